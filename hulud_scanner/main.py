"""Shai-Hulud IOC scanner entrypoint.

Scans every local volume (or SCAN_ROOTS) for git repositories, checks each
against the hash, filename and package denylists and the remote branch
pattern, then prints a summary and optionally notifies Telegram and files
GitHub issues for high findings.
"""

import os
import socket
import sys

from github import Github, GithubException

from hulud_scanner.config import ScanConfig, load_config
from hulud_scanner.errors import SetupError
from hulud_scanner.github_issues import create_issues
from hulud_scanner.models import ScanSummary
from hulud_scanner.orchestrator import ProgressHooks, ScanOrchestrator
from hulud_scanner.report import ScanLog, setup_logging, write_json
from hulud_scanner.telegram import send_digest

EXIT_CLEAN = 0
EXIT_HIGH_FINDINGS = 1
EXIT_SETUP_ERROR = 2


def main() -> None:
    try:
        config = load_config()
    except SetupError as e:
        print(f"Error: {e}")
        sys.exit(EXIT_SETUP_ERROR)

    logger = setup_logging(config.log_file, config.log_level)
    host = socket.gethostname()

    print(f"🪱 Starting Shai-Hulud IOC scan on {host}")
    print(f"📂 Roots: {', '.join(config.scan_roots) if config.scan_roots else 'all local volumes'}")
    print(f"📋 Denylists: {os.path.abspath(config.denylist_dir)}")

    orchestrator = ScanOrchestrator(config, ScanLog(logger), _console_hooks())
    try:
        summary = orchestrator.run()
    except SetupError as e:
        print(f"❌ {e}")
        logger.error("Scan aborted: %s", e)
        sys.exit(EXIT_SETUP_ERROR)
    except KeyboardInterrupt:
        orchestrator.cancel()
        print("\nScan interrupted.")
        sys.exit(130)

    findings = orchestrator.aggregator.findings
    _print_summary(summary, host)

    if config.report_json:
        write_json(config.report_json, summary, findings)
        print(f"🧾 JSON report written to {config.report_json}")

    if config.create_issues:
        _file_issues(config, findings, host)

    send_digest(summary, findings, host, config.telegram_bot_token, config.telegram_chat_id)

    if summary.high_count > 0:
        print(f"\n⛔ {summary.high_count} high finding(s) detected! See {config.log_file}")
        sys.exit(EXIT_HIGH_FINDINGS)

    print("\n✅ Shai-Hulud scan complete.")


def _console_hooks() -> ProgressHooks:
    def on_start(kind: str, name: str) -> None:
        if kind == "volume":
            print(f"\n▶ Scanning volume {name}...")

    def on_done(kind: str, name: str) -> None:
        if kind == "repository":
            print(f"  checked {name}")

    return ProgressHooks(on_unit_start=on_start, on_unit_done=on_done)


def _print_summary(summary: ScanSummary, host: str) -> None:
    print(f"\n{'='*50}")
    print(f"📊 Scan Summary for {host}")
    print(f"{'='*50}")
    print(f"  💽 Volumes:      {summary.drive_count}")
    print(f"  📁 Repositories: {summary.repository_count}")
    print(f"  🟠 High:         {summary.high_count}")
    print(f"  🟡 Medium:       {summary.medium_count}")
    print(f"  🔵 Low:          {summary.low_count}")
    print(f"  Total:           {summary.total}")
    if summary.error_count:
        print(f"  ⚠️  Errors:       {summary.error_count} "
              f"({len(summary.incomplete_repositories)} repositories incompletely checked)")
    print(f"{'='*50}")


def _file_issues(config: ScanConfig, findings, host: str) -> None:
    if not config.github_token or not config.report_repo:
        print("GITHUB_TOKEN and REPORT_REPO are required to create issues, skipping.")
        return
    gh = Github(config.github_token)
    try:
        gh_repo = gh.get_repo(config.report_repo)
    except GithubException as e:
        print(f"Error accessing repo {config.report_repo}: {e}")
        return
    create_issues(gh_repo, findings, host)


if __name__ == "__main__":
    main()
