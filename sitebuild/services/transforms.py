"""
Per-asset-class transforms.

Markup failures raise (no fallback). Purge and script minification return an
Outcome so the build decides the fallback. rjsmin only strips whitespace and
comments, so scripts are parsed first and a syntax error is a failure.
"""
from __future__ import annotations

from typing import Optional

import csscompressor
import esprima
import minify_html
import rjsmin
from esprima.error_handler import Error as ScriptSyntaxError

from sitebuild.domain.errors import MarkupTransformError
from sitebuild.domain.models import Outcome
from sitebuild.services.css_purge import CssPurger


def minify_markup(rel_path: str, html: str, *, dev: bool = False) -> str:
    try:
        return minify_html.minify(
            html,
            minify_css=True,
            minify_js=True,
            keep_comments=dev,
        )
    except Exception as e:
        raise MarkupTransformError(rel_path, str(e)) from e


def purge_styles(css: str, purger: CssPurger) -> Outcome[str]:
    try:
        purged = purger.purge(css)
    except Exception as e:
        return Outcome.failure(f"purge failed: {e}")
    if not purged.strip():
        return Outcome.failure("purge returned no rules")
    return Outcome.success(purged)


def minify_styles(css: str, *, line_break: int = 0) -> str:
    return csscompressor.compress(css, max_linelen=line_break)


def script_syntax_error(js: str) -> Optional[str]:
    """None when the source parses as a classic script or as a module."""
    try:
        esprima.parseScript(js)
        return None
    except ScriptSyntaxError as script_error:
        try:
            esprima.parseModule(js)
            return None
        except ScriptSyntaxError:
            return getattr(script_error, "message", "") or str(script_error) or "syntax error"


def minify_script(js: str, *, keep_bang_comments: bool = False) -> Outcome[str]:
    error = script_syntax_error(js)
    if error is not None:
        return Outcome.failure(error)
    try:
        return Outcome.success(rjsmin.jsmin(js, keep_bang_comments=keep_bang_comments))
    except Exception as e:
        return Outcome.failure(str(e))
