"""Scanner configuration read from environment variables."""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

from hulud_scanner.errors import ConfigError

DEFAULT_DENYLIST_DIR = "denylists"
DEFAULT_LOG_FILE = "shai-hulud-scan.log"
DEFAULT_BRANCH_PATTERN = "shai-hulud"


@dataclass(frozen=True)
class ScanConfig:
    denylist_dir: str = DEFAULT_DENYLIST_DIR
    hash_file: str = "hashes.txt"
    filename_file: str = "filenames.txt"
    package_file: str = "packages.txt"
    scan_roots: Tuple[str, ...] = ()
    excluded_volumes: Tuple[str, ...] = ()
    malicious_branch: str = DEFAULT_BRANCH_PATTERN
    git_timeout: float = 30.0
    max_workers: int = field(default_factory=lambda: min(32, (os.cpu_count() or 1) + 4))
    log_file: str = DEFAULT_LOG_FILE
    log_level: str = "INFO"
    report_json: str = ""
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""
    github_token: str = ""
    report_repo: str = ""
    create_issues: bool = False


def load_config(environ: Optional[Mapping[str, str]] = None) -> ScanConfig:
    env = os.environ if environ is None else environ
    defaults = ScanConfig()

    return ScanConfig(
        denylist_dir=env.get("DENYLIST_DIR", DEFAULT_DENYLIST_DIR),
        hash_file=env.get("HASH_DENYLIST", defaults.hash_file),
        filename_file=env.get("FILENAME_DENYLIST", defaults.filename_file),
        package_file=env.get("PACKAGE_DENYLIST", defaults.package_file),
        scan_roots=_split_paths(env.get("SCAN_ROOTS", "")),
        excluded_volumes=_split_paths(env.get("EXCLUDED_VOLUMES", "")),
        malicious_branch=env.get("MALICIOUS_BRANCH", DEFAULT_BRANCH_PATTERN) or DEFAULT_BRANCH_PATTERN,
        git_timeout=_number(env, "GIT_TIMEOUT", defaults.git_timeout, float),
        max_workers=_number(env, "MAX_WORKERS", defaults.max_workers, int),
        log_file=env.get("LOG_FILE", DEFAULT_LOG_FILE),
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
        report_json=env.get("REPORT_JSON", ""),
        telegram_bot_token=env.get("TELEGRAM_BOT_TOKEN", ""),
        telegram_chat_id=env.get("TELEGRAM_CHAT_ID", ""),
        github_token=env.get("GITHUB_TOKEN", ""),
        report_repo=env.get("REPORT_REPO", ""),
        create_issues=env.get("CREATE_ISSUES", "false").lower() == "true",
    )


def _split_paths(raw: str) -> Tuple[str, ...]:
    return tuple(os.path.abspath(p.strip()) for p in raw.split(os.pathsep) if p.strip())


def _number(env: Mapping[str, str], key: str, default, cast):
    raw = env.get(key, "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigError(f"{key} must be positive, got {raw!r}")
    return value
