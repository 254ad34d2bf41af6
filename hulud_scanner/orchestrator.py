"""Scan orchestration: volumes -> repositories -> matchers -> summary.

Repositories are scanned on a bounded thread pool. Results are folded
into the summary from the submitting thread only, through
``SummaryAggregator.add``, which is also lock-guarded so callers may
feed it from workers.
"""

import concurrent.futures as cf
import logging
import os
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence, Set

from hulud_scanner import denylist as denylist_loader
from hulud_scanner import locator
from hulud_scanner.checks import branch_match, file_hash, filename_match, package_reference
from hulud_scanner.config import ScanConfig
from hulud_scanner.errors import NoVolumesError
from hulud_scanner.models import (
    CheckContext,
    Denylist,
    Finding,
    Repository,
    ScanResult,
    ScanSummary,
    Severity,
    Volume,
)
from hulud_scanner.report import ScanLog

logger = logging.getLogger(__name__)

# Order fixes how findings of one repository are merged and logged.
CHECK_MODULES = {
    "branch": branch_match,
    "packages": package_reference,
    "hashes": file_hash,
    "filenames": filename_match,
}


class ScanState(Enum):
    INIT = "init"
    LOADING_DENYLISTS = "loading-denylists"
    ENUMERATING_VOLUMES = "enumerating-volumes"
    SCANNING = "scanning"
    SUMMARIZING = "summarizing"
    DONE = "done"


def _noop(kind: str, name: str) -> None:
    return None


@dataclass
class ProgressHooks:
    """Presentation callbacks, called with (unit kind, unit name)."""

    on_unit_start: Callable[[str, str], None] = _noop
    on_unit_done: Callable[[str, str], None] = _noop


class SummaryAggregator:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._summary = ScanSummary()
        self._findings: List[Finding] = []

    def add_volume(self) -> None:
        with self._lock:
            self._summary.drive_count += 1

    def add(self, result: ScanResult) -> None:
        """Fold one repository's merged result into the counters."""
        with self._lock:
            self._summary.repository_count += 1
            for finding in result.findings:
                if finding.severity == Severity.HIGH:
                    self._summary.high_count += 1
                elif finding.severity == Severity.MEDIUM:
                    self._summary.medium_count += 1
                else:
                    self._summary.low_count += 1
                self._findings.append(finding)
            if result.errors:
                self._summary.error_count += len(result.errors)
                self._summary.incomplete_repositories.append(result.repo)

    @property
    def summary(self) -> ScanSummary:
        return self._summary

    @property
    def findings(self) -> List[Finding]:
        with self._lock:
            return list(self._findings)


class ScanOrchestrator:
    """One instance per full run."""

    def __init__(
        self,
        config: ScanConfig,
        log: ScanLog,
        hooks: Optional[ProgressHooks] = None,
    ) -> None:
        self.config = config
        self.log = log
        self.hooks = hooks or ProgressHooks()
        self.state = ScanState.INIT
        self.aggregator = SummaryAggregator()
        self.denylist: Optional[Denylist] = None
        self._cancel = threading.Event()
        self._ctx: Optional[CheckContext] = None
        self._seen_roots: Set[str] = set()

    def cancel(self) -> None:
        """Stop walks and pending repositories; in-flight git calls finish or time out."""
        self._cancel.set()

    def run(self) -> ScanSummary:
        """Full scan. Raises SetupError before any scanning on misconfiguration."""
        git = locator.require_git()
        self._seen_roots.clear()
        self._ctx = CheckContext(
            git=git,
            git_timeout=self.config.git_timeout,
            malicious_branch=self.config.malicious_branch,
            cancel_event=self._cancel,
        )

        self.state = ScanState.LOADING_DENYLISTS
        self.denylist = denylist_loader.load_denylists(self.config)
        self.log.message(
            f"Loaded denylists: {len(self.denylist.hashes)} hashes, "
            f"{len(self.denylist.filenames)} filename patterns, "
            f"{len(self.denylist.packages)} packages"
        )

        self.state = ScanState.ENUMERATING_VOLUMES
        volumes = self._volumes()
        self.log.message(f"Scanning {len(volumes)} volume(s): {', '.join(v.path for v in volumes)}")

        self.state = ScanState.SCANNING
        with cf.ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
            try:
                for volume in volumes:
                    if self._cancel.is_set():
                        break
                    self._scan_volume(pool, volume)
            except KeyboardInterrupt:
                self.cancel()
                raise

        self.state = ScanState.SUMMARIZING
        summary = self.aggregator.summary
        self.log.summary(summary)
        self.state = ScanState.DONE
        return summary

    def _volumes(self) -> Sequence[Volume]:
        if self.config.scan_roots:
            return [Volume(path=root) for root in self.config.scan_roots]
        volumes = locator.list_volumes(self.config.excluded_volumes)
        if not volumes:
            raise NoVolumesError(
                "No local read-write volumes found to scan; set SCAN_ROOTS to scan explicit paths."
            )
        return volumes

    def _scan_volume(self, pool: cf.ThreadPoolExecutor, volume: Volume) -> None:
        self.hooks.on_unit_start("volume", volume.path)
        self.aggregator.add_volume()

        futures = {}
        # Explicit roots may span mounts; enumerated volumes stay on their device.
        one_fs = not self.config.scan_roots
        for repo in locator.find_repositories(volume, self._cancel, one_filesystem=one_fs):
            # overlapping roots reach the same repository more than once
            key = os.path.normcase(os.path.realpath(repo.root_path))
            if key in self._seen_roots:
                continue
            self._seen_roots.add(key)
            futures[pool.submit(self.scan_repository, repo)] = repo

        for fut in cf.as_completed(futures):
            repo = futures[fut]
            try:
                result = fut.result()
            except Exception as e:
                # recorded against this repository only
                logger.exception("Scan of %s failed", repo.root_path)
                result = ScanResult(repo=repo.root_path, errors=[f"scan failed: {e}"])
            self._record(result)
            self.hooks.on_unit_done("repository", repo.root_path)

        self.hooks.on_unit_done("volume", volume.path)

    def scan_repository(self, repo: Repository) -> ScanResult:
        """Run every matcher against one repository and merge in check order."""
        self.hooks.on_unit_start("repository", repo.root_path)
        merged = ScanResult(repo=repo.root_path)
        if self._cancel.is_set():
            merged.errors.append("scan cancelled before repository was checked")
            return merged

        for module in CHECK_MODULES.values():
            result = module.run(repo, self.denylist, self._ctx)
            merged.findings.extend(result.findings)
            merged.errors.extend(result.errors)
        if self._cancel.is_set():
            merged.errors.append("scan cancelled while repository was being checked")
        return merged

    def _record(self, result: ScanResult) -> None:
        self.aggregator.add(result)
        if result.findings:
            self.log.block(
                f"Findings in {result.repo}",
                [f"{f.severity.value.upper():6} {f.title}" for f in result.findings],
            )
        for error in result.errors:
            self.log.message(f"Incomplete check in {result.repo}: {error}")
