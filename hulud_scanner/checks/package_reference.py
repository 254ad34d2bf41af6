"""Denylisted npm package references in manifests and lockfiles."""

import json
import logging
import os
import re
from typing import Dict, List, Optional

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

MANIFEST_NAME = "package.json"
LOCKFILE_NAMES = {"package-lock.json", "npm-shrinkwrap.json", "yarn.lock", "pnpm-lock.yaml"}
DEPENDENCY_KEYS = ("dependencies", "devDependencies")

# Intentionally broken fixtures shipped inside scanned trees.
MALFORMED_FIXTURE_MARKER = "malformed"


def run(repo: Repository, denylist: Denylist, ctx: CheckContext) -> ScanResult:
    result = ScanResult(repo=repo.root_path)
    if not denylist.packages:
        return result

    name_patterns = _name_patterns(denylist.packages)
    for filepath in iter_files(repo.root_path, ctx.cancel_event):
        basename = os.path.basename(filepath)
        if basename == MANIFEST_NAME:
            rel_path = os.path.relpath(filepath, repo.root_path)
            if MALFORMED_FIXTURE_MARKER in rel_path.lower():
                continue
            result.findings.extend(check_manifest(filepath, repo, denylist, result.errors))
        elif basename in LOCKFILE_NAMES:
            finding = check_lockfile(filepath, repo, name_patterns, result.errors)
            if finding is not None:
                result.findings.append(finding)
    return result


def check_manifest(
    filepath: str,
    repo: Repository,
    denylist: Denylist,
    errors: List[str],
) -> List[Finding]:
    """Exact name + version matches under dependencies/devDependencies."""
    try:
        with open(filepath, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning("Unparseable manifest %s: %s", filepath, e)
        errors.append(f"unparseable manifest {filepath}: {e}")
        return []

    if not isinstance(data, dict):
        logger.warning("Unparseable manifest %s: top level is not an object", filepath)
        errors.append(f"unparseable manifest {filepath}: top level is not an object")
        return []

    sections = {key: _string_map(data.get(key)) for key in DEPENDENCY_KEYS}

    findings = []
    for entry in sorted(denylist.packages, key=lambda e: (e.name, e.version)):
        keys = [key for key in DEPENDENCY_KEYS if sections[key].get(entry.name) == entry.version]
        if not keys:
            continue
        findings.append(Finding(
            severity=Severity.MEDIUM,
            category=Category.PACKAGE_MANIFEST,
            repo_path=repo.root_path,
            detail=f"{entry.name}@{entry.version} declared in {', '.join(keys)}",
            file_path=filepath,
        ))
    return findings


def check_lockfile(
    filepath: str,
    repo: Repository,
    name_patterns: Dict[str, re.Pattern],
    errors: List[str],
) -> Optional[Finding]:
    """Name-only textual search; one finding per file with the line-match count."""
    count = 0
    matched = set()
    try:
        with open(filepath, "r", encoding="utf-8", errors="ignore") as f:
            for line in f:
                hits = {name for name, pattern in name_patterns.items() if mentions_package(line, pattern)}
                if hits:
                    count += 1
                    matched.update(hits)
    except OSError as e:
        logger.warning("Unreadable lockfile %s: %s", filepath, e)
        errors.append(f"unreadable lockfile {filepath}: {e}")
        return None

    if not count:
        return None
    return Finding(
        severity=Severity.MEDIUM,
        category=Category.PACKAGE_LOCKFILE,
        repo_path=repo.root_path,
        detail=f"{count} line match(es) for {', '.join(sorted(matched))} in {os.path.basename(filepath)}",
        file_path=filepath,
    )


def _name_patterns(packages) -> Dict[str, re.Pattern]:
    names = sorted({p.name for p in packages})
    return {name: re.compile(re.escape(name) + r"(?![\w.-])") for name in names}


NAME_CHARS = re.compile(r"[\w.@-]")
SCOPE_SUFFIX = re.compile(r"@[\w.-]+$")


def mentions_package(line: str, pattern: re.Pattern) -> bool:
    """True when the line names the package as a whole token.

    "left-pad" matches ``"left-pad": ``, ``node_modules/left-pad`` and
    ``left-pad@^1.3.0`` but not ``left-pad-extra`` or ``@scope/left-pad``.
    """
    for match in pattern.finditer(line):
        start = match.start()
        if start == 0:
            return True
        prev = line[start - 1]
        if prev == "/":
            if SCOPE_SUFFIX.search(line, 0, start - 1):
                continue
            return True
        if not NAME_CHARS.match(prev):
            return True
    return False


def _string_map(value) -> Dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {k: v for k, v in value.items() if isinstance(v, str)}
