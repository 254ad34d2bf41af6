"""Glob matching of file names and workflow paths against known-bad patterns."""

import fnmatch
import os

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


def run(repo: Repository, denylist: Denylist, ctx: CheckContext) -> ScanResult:
    result = ScanResult(repo=repo.root_path)
    patterns = sorted(entry.pattern for entry in denylist.filenames)
    if not patterns:
        return result

    for filepath in iter_files(repo.root_path, ctx.cancel_event):
        rel_path = os.path.relpath(filepath, repo.root_path).replace(os.sep, "/")
        basename = os.path.basename(filepath)
        for pattern in patterns:
            if matches(pattern, basename, rel_path):
                result.findings.append(Finding(
                    severity=Severity.MEDIUM,
                    category=Category.FILENAME,
                    repo_path=repo.root_path,
                    detail=f"{rel_path} matches known-bad name '{pattern}'",
                    file_path=filepath,
                ))
    return result


def matches(pattern: str, basename: str, rel_path: str) -> bool:
    # Patterns with a slash describe a path inside the repository.
    if "/" in pattern:
        return fnmatch.fnmatchcase(rel_path, pattern.lstrip("/"))
    return fnmatch.fnmatchcase(basename, pattern)
