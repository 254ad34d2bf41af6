"""Integration test — full orchestrated scan over fixture volumes with git mocked."""

import json
import logging
import os
from unittest.mock import MagicMock, patch

import pytest

from hulud_scanner.config import ScanConfig
from hulud_scanner.errors import DenylistEmptyError, GitNotFoundError, SetupError
from hulud_scanner.locator import find_repositories
from hulud_scanner.models import Category, Volume
from hulud_scanner.orchestrator import (
    CHECK_MODULES,
    ProgressHooks,
    ScanOrchestrator,
    ScanState,
)
from hulud_scanner.report import ScanLog

MANIFEST = json.dumps({"name": "infected", "dependencies": {"left-pad": "1.3.0"}})


def _git_ok(args, **kwargs):
    return MagicMock(returncode=0, stdout="1111\trefs/heads/main\n", stderr="")


@pytest.fixture
def volume(tmp_path, make_repo, write_file, payload_js):
    """Two repositories: one clean, one with a payload file and a pinned bad dependency."""
    base = tmp_path / "volume"
    base.mkdir()
    clean = make_repo("clean", base=base)
    write_file(clean.root_path, "package.json", json.dumps({"dependencies": {"left-pad": "1.2.0"}}))
    write_file(clean.root_path, "src/index.js", b"console.log('ok');\n")
    infected = make_repo("infected", base=base)
    write_file(infected.root_path, "lib/index.js", payload_js)
    write_file(infected.root_path, "package.json", MANIFEST)
    return str(base)


@pytest.fixture
def scan(denylist_dir):
    def _scan(*roots, hooks=None):
        config = ScanConfig(denylist_dir=denylist_dir, scan_roots=tuple(roots), log_file="", max_workers=2)
        orchestrator = ScanOrchestrator(config, ScanLog(logging.getLogger("hulud_scanner.test")), hooks)
        return orchestrator, orchestrator.run()

    return _scan


@patch("hulud_scanner.checks.branch_match.subprocess.run", side_effect=_git_ok)
@patch("hulud_scanner.locator.shutil.which", return_value="/usr/bin/git")
class TestScanFlow:
    def test_end_to_end_counts(self, mock_which, mock_run, scan, volume):
        orchestrator, summary = scan(volume)
        assert summary.drive_count == 1
        assert summary.repository_count == 2
        assert summary.high_count == 1
        assert summary.medium_count == 1
        assert summary.low_count == 0
        assert summary.error_count == 0
        assert orchestrator.state == ScanState.DONE

    def test_findings_carry_repository(self, mock_which, mock_run, scan, volume):
        orchestrator, _ = scan(volume)
        findings = orchestrator.aggregator.findings
        assert {f.category for f in findings} == {Category.FILE_HASH, Category.PACKAGE_MANIFEST}
        assert all(f.repo_path == os.path.join(volume, "infected") for f in findings)

    def test_idempotent(self, mock_which, mock_run, scan, volume):
        _, first = scan(volume)
        _, second = scan(volume)
        assert first.to_dict() == second.to_dict()

    def test_clean_volume(self, mock_which, mock_run, scan, tmp_path, make_repo, write_file):
        base = tmp_path / "clean-volume"
        base.mkdir()
        repo = make_repo("app", base=base)
        write_file(repo.root_path, "index.js", b"1;\n")
        _, summary = scan(str(base))
        assert summary.repository_count == 1
        assert summary.total == 0

    def test_each_root_counts_as_volume(self, mock_which, mock_run, scan, volume, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()
        _, summary = scan(volume, str(empty))
        assert summary.drive_count == 2
        assert summary.repository_count == 2

    def test_nested_repository_counted_once(self, mock_which, mock_run, scan, tmp_path, make_repo, write_file, payload_js):
        base = tmp_path / "nested-volume"
        base.mkdir()
        outer = make_repo("outer", base=base)
        inner = make_repo("inner", base=os.path.join(outer.root_path, "vendor"))
        write_file(inner.root_path, "lib/index.js", payload_js)
        orchestrator, summary = scan(str(base))
        assert summary.repository_count == 2
        assert summary.high_count == 1
        assert [f.repo_path for f in orchestrator.aggregator.findings] == [inner.root_path]

    def test_overlapping_roots_scan_repository_once(self, mock_which, mock_run, scan, volume):
        _, summary = scan(volume, os.path.join(volume, "infected"))
        assert summary.drive_count == 2
        assert summary.repository_count == 2
        assert summary.high_count == 1
        assert summary.medium_count == 1

    def test_branch_finding_is_high(self, mock_which, mock_run, scan, volume):
        mock_run.side_effect = lambda args, **kw: MagicMock(
            returncode=0, stdout="1111\trefs/heads/shai-hulud\n", stderr="",
        )
        _, summary = scan(volume)
        # one per repository from the branch plus the payload file
        assert summary.high_count == 3

    def test_unreachable_origin_does_not_abort(self, mock_which, mock_run, scan, volume):
        infected = os.path.join(volume, "infected")

        def git(args, **kwargs):
            if args[2] == infected:
                return MagicMock(returncode=128, stdout="", stderr="fatal: Could not read from remote repository.\n")
            return _git_ok(args)

        mock_run.side_effect = git
        orchestrator, summary = scan(volume)
        assert summary.repository_count == 2
        assert summary.high_count == 1
        assert summary.medium_count == 1
        assert summary.error_count == 1
        assert summary.incomplete_repositories == [infected]

    def test_matcher_crash_isolated_to_repository(self, mock_which, mock_run, scan, volume):
        with patch.dict(CHECK_MODULES, {"filenames": MagicMock(run=MagicMock(side_effect=RuntimeError("boom")))}):
            _, summary = scan(volume)
        assert summary.repository_count == 2
        assert summary.high_count == 0
        assert len(summary.incomplete_repositories) == 2

    def test_progress_hooks(self, mock_which, mock_run, scan, volume):
        started, done = [], []
        hooks = ProgressHooks(
            on_unit_start=lambda kind, name: started.append(kind),
            on_unit_done=lambda kind, name: done.append(kind),
        )
        scan(volume, hooks=hooks)
        assert started.count("volume") == 1
        assert started.count("repository") == 2
        assert done.count("repository") == 2
        assert done[-1] == "volume"

    def test_merge_order_follows_checks(self, mock_which, mock_run, scan, volume):
        orchestrator, _ = scan(volume)
        repo = next(r for r in _repos(volume) if r.root_path.endswith("infected"))
        merged = orchestrator.scan_repository(repo)
        assert [f.category for f in merged.findings] == [Category.PACKAGE_MANIFEST, Category.FILE_HASH]

    def test_summary_logged(self, mock_which, mock_run, scan, volume, caplog):
        with caplog.at_level(logging.INFO, logger="hulud_scanner.test"):
            scan(volume)
        assert "Scan summary: 1 volume(s), 2 repositories, high=1 medium=1 low=0" in caplog.text
        assert "Findings in" in caplog.text


def _repos(volume):
    return list(find_repositories(Volume(volume)))


class TestSetupFailures:
    @patch("hulud_scanner.checks.branch_match.subprocess.run")
    @patch("hulud_scanner.locator.shutil.which", return_value=None)
    def test_missing_git_aborts_before_scanning(self, mock_which, mock_run, scan, volume):
        with pytest.raises(GitNotFoundError):
            scan(volume)
        mock_run.assert_not_called()

    @patch("hulud_scanner.checks.branch_match.subprocess.run")
    @patch("hulud_scanner.locator.shutil.which", return_value="/usr/bin/git")
    def test_empty_denylist_aborts(self, mock_which, mock_run, scan, volume, denylist_dir):
        with open(os.path.join(denylist_dir, "hashes.txt"), "w") as f:
            f.write("# nothing\n")
        with pytest.raises(DenylistEmptyError):
            scan(volume)
        mock_run.assert_not_called()

    @patch("hulud_scanner.orchestrator.locator.list_volumes", return_value=[])
    @patch("hulud_scanner.checks.branch_match.subprocess.run")
    @patch("hulud_scanner.locator.shutil.which", return_value="/usr/bin/git")
    def test_no_volumes_enumerated_aborts(self, mock_which, mock_run, mock_volumes, scan):
        with pytest.raises(SetupError, match="SCAN_ROOTS"):
            scan()
        mock_volumes.assert_called_once()
        mock_run.assert_not_called()
