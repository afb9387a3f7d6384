######## errors.py
########


class SiteBuildError(Exception):
    """Base class for everything the CLI turns into a non-zero exit."""


class BuildError(SiteBuildError):
    pass


class MarkupTransformError(BuildError):
    def __init__(self, file: str, reason: str):
        super().__init__(f"Could not minify markup {file}: {reason}")
        self.file = file
        self.reason = reason


class NoAvailablePortError(SiteBuildError):
    pass


class ServerStartError(SiteBuildError):
    pass


class AuditToolError(SiteBuildError):
    pass
