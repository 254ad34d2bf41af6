"""GitHub issues for High findings, filed in a security tracker repository."""

from typing import List

from github import GithubException

from hulud_scanner.models import Finding, Severity

LABELS = {
    "security": "d93f0b",
    "shai-hulud": "b60205",
    "high": "e99695",
}


def create_issues(gh_repo, findings: List[Finding], host: str) -> int:
    """Create one issue per High finding not already tracked. Returns the number created."""
    actionable = [f for f in findings if f.severity == Severity.HIGH]
    if not actionable:
        print("\nNo high findings — no issues to create.")
        return 0

    _ensure_labels(gh_repo)
    existing_titles = _get_existing_issue_titles(gh_repo)

    created = 0
    skipped = 0
    for finding in actionable:
        title = issue_title(finding, host)
        if title in existing_titles:
            skipped += 1
            continue
        try:
            gh_repo.create_issue(
                title=title,
                body=format_issue_body(finding, host),
                labels=list(LABELS),
            )
            created += 1
            existing_titles.add(title)
        except GithubException as e:
            print(f"  Failed to create issue '{title}': {e}")

    print(f"\n📝 Issues: {created} created, {skipped} skipped (duplicates)")
    return created


def issue_title(finding: Finding, host: str) -> str:
    return f"[shai-hulud] {host}:{finding.repo_path} {finding.title}"


def format_issue_body(finding: Finding, host: str) -> str:
    lines = [
        f"## 🟠 {finding.severity.value.upper()} — {finding.category.value}",
        "",
        f"**Host:** `{host}`",
        f"**Repository:** `{finding.repo_path}`",
        "",
        f"**Indicator:** {finding.detail}",
    ]
    if finding.file_path:
        lines.append(f"**File:** `{finding.file_path}`")
    lines.extend([
        "",
        "### Next steps",
        "Treat the machine and any credentials reachable from it as exposed. "
        "Rotate npm, GitHub and cloud tokens before cleaning the repository.",
    ])
    return "\n".join(lines)


def _ensure_labels(gh_repo) -> None:
    existing = {label.name for label in gh_repo.get_labels()}
    for name, color in LABELS.items():
        if name not in existing:
            try:
                gh_repo.create_label(name=name, color=color)
            except GithubException:
                pass  # created concurrently by another host


def _get_existing_issue_titles(gh_repo) -> set:
    titles = set()
    try:
        for issue in gh_repo.get_issues(state="open", labels=["shai-hulud"]):
            titles.add(issue.title)
    except GithubException:
        pass
    return titles
