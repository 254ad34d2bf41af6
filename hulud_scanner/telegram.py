"""Telegram digest notification."""

import json
import socket
import urllib.error
import urllib.request
from datetime import datetime, timezone
from typing import List

from hulud_scanner.models import Finding, ScanSummary, Severity


def send_digest(
    summary: ScanSummary,
    findings: List[Finding],
    host: str,
    bot_token: str,
    chat_id: str,
) -> bool:
    """Send a Telegram message summarizing the scan of one host."""
    if not bot_token or not chat_id:
        print("Telegram credentials not configured, skipping notification.")
        return False

    message = _format_message(summary, findings, host)
    return _send_message(bot_token, chat_id, message)


def _format_message(summary: ScanSummary, findings: List[Finding], host: str) -> str:
    now = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")

    top_findings = [f for f in findings if f.severity == Severity.HIGH][:5]

    lines = [
        f"🪱 Shai-Hulud scan: {host}",
        f"📅 {now}",
        f"💽 Volumes: {summary.drive_count}  📁 Repositories: {summary.repository_count}",
        "",
        f"🟠 High: {summary.high_count}",
        f"🟡 Medium: {summary.medium_count}",
        f"🔵 Low: {summary.low_count}",
        "",
    ]

    if top_findings:
        lines.append("⚠️ Top findings:")
        for f in top_findings:
            lines.append(f"  🟠 {f.title} ({f.repo_path})")
        lines.append("")

    if summary.error_count:
        lines.append(
            f"❓ {summary.error_count} check(s) could not run in "
            f"{len(summary.incomplete_repositories)} repository(ies), results there are incomplete."
        )
        lines.append("")
    elif not summary.total:
        lines.append("✅ No indicators of compromise found!")

    return "\n".join(lines).rstrip("\n")


def _send_message(bot_token: str, chat_id: str, message: str) -> bool:
    url = f"https://api.telegram.org/bot{bot_token}/sendMessage"
    payload = json.dumps({
        "chat_id": chat_id,
        "text": message,
        "disable_web_page_preview": True,
    }).encode("utf-8")

    req = urllib.request.Request(
        url,
        data=payload,
        headers={"Content-Type": "application/json"},
    )

    try:
        with urllib.request.urlopen(req, timeout=10) as resp:
            return resp.status == 200
    except (urllib.error.URLError, urllib.error.HTTPError, socket.timeout) as e:
        print(f"Failed to send Telegram message: {e}")
        return False
