"""Denylist loading from flat text files.

Formats (UTF-8, one entry per line, ``#`` comments and blank lines ignored):

* hashes:    ``<sha256 hex>[,description]``
* filenames: ``<glob pattern>,<description>``
* packages:  ``<name>:<version>``

A malformed line is logged and skipped. A file that yields no entries
at all is a misconfiguration and raises ``DenylistEmptyError``.
"""

import logging
import os
import re
from typing import FrozenSet, Optional

from hulud_scanner.config import ScanConfig
from hulud_scanner.errors import DenylistEmptyError, ParseError
from hulud_scanner.models import (
    Denylist,
    DenylistKind,
    FilenamePatternEntry,
    HashEntry,
    PackageEntry,
)

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {".txt"}
COMMENT_MARKER = "#"

SEPARATORS = {
    DenylistKind.HASH: ",",
    DenylistKind.FILENAME: ",",
    DenylistKind.PACKAGE: ":",
}

# Minimum fields per line after splitting. A hash line is a bare digest
# with an optional description.
MIN_FIELDS = {
    DenylistKind.HASH: 1,
    DenylistKind.FILENAME: 2,
    DenylistKind.PACKAGE: 2,
}

SHA256_HEX = re.compile(r"^[0-9a-fA-F]{64}$")


def load(path: str, kind: DenylistKind) -> FrozenSet:
    """Parse one denylist file into a frozenset of entries of ``kind``."""
    ext = os.path.splitext(path)[1].lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise ParseError(path, f"unsupported file type {ext or '(none)'!r}")

    try:
        with open(path, "r", encoding="utf-8-sig") as f:
            lines = f.readlines()
    except (OSError, UnicodeDecodeError) as e:
        raise ParseError(path, str(e)) from e

    entries = set()
    for line_num, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith(COMMENT_MARKER):
            continue
        entry = parse_line(line, kind)
        if entry is None:
            logger.warning("Skipping malformed %s denylist line %s:%d: %r", kind.value, path, line_num, line)
            continue
        entries.add(entry)

    if not entries:
        raise DenylistEmptyError(path)

    logger.info("Loaded %d %s entries from %s", len(entries), kind.value, path)
    return frozenset(entries)


def parse_line(line: str, kind: DenylistKind):
    """Return the entry for one trimmed, non-comment line, or None if malformed."""
    sep = SEPARATORS[kind]
    if kind == DenylistKind.PACKAGE:
        # Scoped names start with "@" but never contain ":", versions never do either.
        fields = [p.strip() for p in line.rsplit(sep, 1)]
    else:
        fields = [p.strip() for p in line.split(sep, 1)]

    if len(fields) < MIN_FIELDS[kind] or not fields[0]:
        return None

    if kind == DenylistKind.HASH:
        if not SHA256_HEX.match(fields[0]):
            return None
        return HashEntry(digest_hex=fields[0].lower())

    if kind == DenylistKind.FILENAME:
        return FilenamePatternEntry(pattern=fields[0])

    name, version = fields[0], fields[1]
    if not version:
        return None
    return PackageEntry(name=name, version=version)


def load_denylists(config: ScanConfig, directory: Optional[str] = None) -> Denylist:
    """Load all three lists. Any ParseError or empty list aborts the run."""
    base = directory or config.denylist_dir
    return Denylist(
        hashes=load(os.path.join(base, config.hash_file), DenylistKind.HASH),
        filenames=load(os.path.join(base, config.filename_file), DenylistKind.FILENAME),
        packages=load(os.path.join(base, config.package_file), DenylistKind.PACKAGE),
    )
