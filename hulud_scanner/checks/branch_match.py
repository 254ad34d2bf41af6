"""Remote branch check via ``git ls-remote --heads origin``."""

import logging
import os
import subprocess
from typing import List

from hulud_scanner.errors import CheckError
from hulud_scanner.models import (
    Category,
    CheckContext,
    Denylist,
    Finding,
    Repository,
    ScanResult,
    Severity,
)

logger = logging.getLogger(__name__)

HEADS_PREFIX = "refs/heads/"


def run(repo: Repository, denylist: Denylist, ctx: CheckContext) -> ScanResult:
    result = ScanResult(repo=repo.root_path)
    try:
        branches = list_remote_heads(repo, ctx)
    except CheckError as e:
        logger.warning("Branch check skipped for %s: %s", repo.root_path, e)
        result.errors.append(f"branch check: {e}")
        return result

    for branch in branches:
        if ctx.malicious_branch in branch:
            result.findings.append(Finding(
                severity=Severity.HIGH,
                category=Category.BRANCH,
                repo_path=repo.root_path,
                detail=f"Remote branch '{branch}' on origin matches '{ctx.malicious_branch}'",
            ))
    return result


def list_remote_heads(repo: Repository, ctx: CheckContext) -> List[str]:
    """Return branch names advertised by ``origin``. Never modifies the repository."""
    env = dict(os.environ, GIT_TERMINAL_PROMPT="0")
    try:
        proc = subprocess.run(
            [ctx.git, "-C", repo.root_path, "ls-remote", "--heads", "origin"],
            capture_output=True,
            text=True,
            timeout=ctx.git_timeout,
            env=env,
            stdin=subprocess.DEVNULL,
        )
    except subprocess.TimeoutExpired:
        raise CheckError(f"git ls-remote timed out after {ctx.git_timeout}s") from None
    except OSError as e:
        raise CheckError(f"cannot run git: {e}") from e

    if proc.returncode != 0:
        stderr = (proc.stderr or "").strip().splitlines()
        reason = stderr[-1] if stderr else f"exit status {proc.returncode}"
        raise CheckError(f"git ls-remote failed: {reason}")

    return parse_ls_remote(proc.stdout or "")


def parse_ls_remote(output: str) -> List[str]:
    branches = []
    for line in output.splitlines():
        if not line.strip():
            continue
        parts = line.split("\t")
        if len(parts) != 2 or not parts[1].startswith(HEADS_PREFIX):
            raise CheckError(f"unexpected ls-remote output line: {line!r}")
        branches.append(parts[1][len(HEADS_PREFIX):])
    return branches
