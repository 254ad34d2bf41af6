"""Exception taxonomy: setup errors abort the run, check errors skip a unit."""


class ScanError(Exception):
    pass


class SetupError(ScanError):
    """Misconfiguration detected before any repository is scanned."""


class ConfigError(SetupError):
    pass


class GitNotFoundError(SetupError):
    pass


class ParseError(SetupError):
    def __init__(self, path: str, reason: str):
        super().__init__(f"Cannot load denylist {path}: {reason}")
        self.path = path
        self.reason = reason


class DenylistEmptyError(SetupError):
    def __init__(self, path: str):
        super().__init__(f"Denylist {path} contains no usable entries")
        self.path = path


class NoVolumesError(SetupError):
    pass


class CheckError(ScanError):
    """A matcher could not complete for one repository."""