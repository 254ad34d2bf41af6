"""SHA-256 comparison of JavaScript files against known payload digests."""

import hashlib
import logging
import os
from typing import Optional

from hulud_scanner.models import (
    Category,
    CheckContext,
    Denylist,
    Finding,
    Repository,
    ScanResult,
    Severity,
)
from hulud_scanner.walk import iter_files

logger = logging.getLogger(__name__)

JS_EXTENSIONS = {".js", ".mjs", ".cjs"}
CHUNK_SIZE = 64 * 1024


def run(repo: Repository, denylist: Denylist, ctx: CheckContext) -> ScanResult:
    result = ScanResult(repo=repo.root_path)
    known = {entry.digest_hex.lower() for entry in denylist.hashes}
    if not known:
        return result

    for filepath in iter_files(repo.root_path, ctx.cancel_event):
        if os.path.splitext(filepath)[1].lower() not in JS_EXTENSIONS:
            continue
        digest = sha256_file(filepath)
        if digest is None:
            result.errors.append(f"unreadable file {filepath}")
            continue
        if digest in known:
            result.findings.append(Finding(
                severity=Severity.HIGH,
                category=Category.FILE_HASH,
                repo_path=repo.root_path,
                detail=f"{os.path.relpath(filepath, repo.root_path)} matches known payload SHA-256 {digest}",
                file_path=filepath,
            ))
    return result


def sha256_file(path: str) -> Optional[str]:
    """Lowercase hex SHA-256 of the file, or None when it cannot be read."""
    hasher = hashlib.sha256()
    try:
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
                hasher.update(chunk)
    except OSError as e:
        logger.warning("Cannot hash %s: %s", path, e)
        return None
    return hasher.hexdigest()
