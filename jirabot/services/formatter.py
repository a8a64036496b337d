"""
Response formatting

Pure functions turning normalized tracker data into chat text and
attachment payloads.
"""
from typing import List, Sequence

from jirabot.models.schemas import (
    NO_STATUS,
    Attachment,
    AttachmentField,
    ChatReply,
    Filter,
    Issue,
    SearchOutcome,
)

TOO_MANY_SUFFIX = " (too many to list)"


def format_issue_line(issue: Issue) -> str:
    """
    One-line issue summary

    Example:
        [ABC-123] Fix login. Jane Doe / Open, 1.0, 1.1 https://jira/browse/ABC-123
    """
    return (
        f"[{issue.key}] {issue.summary}. {issue.assignee_name} / "
        f"{issue.status or NO_STATUS}, {issue.fix_versions_text} {issue.browse_url}"
    )


def format_issue_attachment(issue: Issue) -> Attachment:
    """
    Rich attachment for an issue

    Only attributes the issue actually has become fields; absent ones are
    omitted rather than shown blank.
    """
    fields: List[AttachmentField] = []
    candidates = [
        ("Type", issue.type),
        ("Status", issue.status),
        ("Priority", issue.priority),
        ("Assignee", issue.assignee_name if issue.has_assignee else None),
        ("Due Date", issue.due_date),
    ]
    for title, value in candidates:
        if value:
            fields.append(AttachmentField(title=title, value=value))

    return Attachment(
        fallback=format_issue_line(issue),
        title=f"{issue.key}: {issue.summary}",
        title_link=issue.browse_url,
        author_name=f"{issue.reporter_name} (Reporter)" if issue.reporter_name else None,
        author_icon=issue.icon_url,
        text=issue.description,
        fields=fields,
    )


def format_issue_reply(issue: Issue) -> ChatReply:
    """Summary line plus rich attachment"""
    return ChatReply(
        text=format_issue_line(issue),
        attachments=[format_issue_attachment(issue)],
    )


def format_search(
    outcome: SearchOutcome,
    issues: Sequence[Issue],
    navigator_url: str
) -> str:
    """
    Search summary followed by one line per resolved issue

    Args:
        outcome: Search outcome (count and listing marker)
        issues: Resolved issues, empty when over the cap
        navigator_url: Web UI link for the query

    Returns:
        Reply text
    """
    header = f"I found {outcome.total} issues for your search. {navigator_url}"
    if outcome.too_many:
        return header + TOO_MANY_SUFFIX

    lines = [header]
    lines.extend(format_issue_line(issue) for issue in issues)
    return "\n".join(lines)


def format_filter(saved: Filter) -> str:
    return f"{saved.name}: {saved.query}"


def format_filter_list(filters: Sequence[Filter]) -> str:
    """Count line plus one "name: query" line per filter"""
    noun = "filter" if len(filters) == 1 else "filters"
    lines = [f"Found {len(filters)} saved {noun}:"]
    lines.extend(format_filter(f) for f in filters)
    return "\n".join(lines)


def format_watchers(key: str, watchers: Sequence[str]) -> str:
    if not watchers:
        return f"Nobody is watching {key}"
    return f"Watchers of {key}: {', '.join(watchers)}"
