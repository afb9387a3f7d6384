from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Pattern

import tinycss2

# Same token shape the markup/script scan produces: words, dashes, slashes and colons.
_CONTENT_TOKEN = re.compile(r"[\w\-/:]+(?<!:)")

_CLASS_OR_ID = re.compile(r"[.#](-?[_a-zA-Z\\][\w\\:/-]*)")

# Only these at-rules hold style rules worth filtering.
_GROUPING_AT_RULES = {"media", "supports", "layer", "container", "document"}


def extract_tokens(text: str) -> set[str]:
    return set(_CONTENT_TOKEN.findall(text or ""))


def _split_selectors(prelude: str) -> list[str]:
    out: list[str] = []
    depth = 0
    current: list[str] = []
    for ch in prelude:
        if ch in "([":
            depth += 1
        elif ch in ")]":
            depth -= 1
        if ch == "," and depth == 0:
            out.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    out.append("".join(current).strip())
    return [s for s in out if s]


@dataclass
class CssPurger:
    """
    Drops style rules whose class/id selectors never appear in the scanned content.
    Selectors made only of element names or pseudo-classes are always kept.
    """
    used: set[str]
    safelist: tuple[Pattern[str], ...] = ()

    @classmethod
    def from_content(cls, contents: Iterable[str], safelist: Iterable[str] = ()) -> "CssPurger":
        used: set[str] = set()
        for text in contents:
            used |= extract_tokens(text)
        return cls(used=used, safelist=tuple(re.compile(p) for p in safelist))

    def _is_used(self, name: str) -> bool:
        name = name.replace("\\", "")
        if name in self.used:
            return True
        return any(rx.search(name) for rx in self.safelist)

    def keep_selector(self, selector: str) -> bool:
        if any(rx.search(selector) for rx in self.safelist):
            return True
        # :not(.x) and attribute values never require a class to be present
        scan = re.sub(r":not\([^)]*\)|\[[^\]]*\]", "", selector)
        return all(self._is_used(name) for name in _CLASS_OR_ID.findall(scan))

    def _purge_rules(self, rules) -> list[str]:
        out: list[str] = []
        for rule in rules:
            if rule.type == "qualified-rule":
                selectors = _split_selectors(tinycss2.serialize(rule.prelude))
                kept = [s for s in selectors if self.keep_selector(s)]
                if kept:
                    out.append(",".join(kept) + "{" + tinycss2.serialize(rule.content) + "}")
            elif rule.type == "at-rule":
                keyword = rule.lower_at_keyword
                if keyword in _GROUPING_AT_RULES and rule.content is not None:
                    inner = self._purge_rules(
                        tinycss2.parse_rule_list(rule.content, skip_comments=True, skip_whitespace=True)
                    )
                    if inner:
                        prelude = tinycss2.serialize(rule.prelude)
                        out.append(f"@{rule.at_keyword}{prelude}{{" + "".join(inner) + "}")
                else:
                    out.append(rule.serialize())
            elif rule.type == "error":
                raise ValueError(f"CSS parse error at line {rule.source_line}: {rule.message}")
        return out

    def purge(self, css: str) -> str:
        rules = tinycss2.parse_stylesheet(css, skip_comments=True, skip_whitespace=True)
        return "\n".join(self._purge_rules(rules))
