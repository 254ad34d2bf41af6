import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List, Optional


class Severity(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Category(Enum):
    BRANCH = "branch"
    PACKAGE_MANIFEST = "package-manifest"
    PACKAGE_LOCKFILE = "package-lockfile"
    FILE_HASH = "file-hash"
    FILENAME = "filename"


class DenylistKind(Enum):
    HASH = "hash"
    FILENAME = "filename"
    PACKAGE = "package"


@dataclass(frozen=True)
class HashEntry:
    digest_hex: str  # lowercase SHA-256, 64 chars


@dataclass(frozen=True)
class FilenamePatternEntry:
    pattern: str


@dataclass(frozen=True)
class PackageEntry:
    name: str
    version: str


@dataclass(frozen=True)
class Denylist:
    hashes: FrozenSet[HashEntry]
    filenames: FrozenSet[FilenamePatternEntry]
    packages: FrozenSet[PackageEntry]


@dataclass(frozen=True)
class Volume:
    path: str
    fs_type: str = ""


@dataclass(frozen=True)
class Repository:
    root_path: str
    control_dir: str


@dataclass(frozen=True)
class Finding:
    severity: Severity
    category: Category
    repo_path: str
    detail: str
    file_path: str = ""

    @property
    def title(self) -> str:
        return f"[{self.category.value}] {self.detail}"


@dataclass
class ScanResult:
    repo: str
    findings: List[Finding] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


@dataclass
class ScanSummary:
    drive_count: int = 0
    repository_count: int = 0
    low_count: int = 0
    medium_count: int = 0
    high_count: int = 0
    error_count: int = 0
    incomplete_repositories: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.low_count + self.medium_count + self.high_count

    def to_dict(self) -> dict:
        return {
            "drive_count": self.drive_count,
            "repository_count": self.repository_count,
            "low_count": self.low_count,
            "medium_count": self.medium_count,
            "high_count": self.high_count,
            "error_count": self.error_count,
            "incomplete_repositories": list(self.incomplete_repositories),
        }


@dataclass
class CheckContext:
    """Runtime knobs shared by every matcher for one scan."""

    git: str = "git"
    git_timeout: float = 30.0
    malicious_branch: str = "shai-hulud"
    cancel_event: Optional[threading.Event] = None
