"""Build compact CleanIssue / CleanComment records from raw Jira responses."""
from typing import Any, Optional

from jira_context.jira.adf import document_content, extract_mentions, extract_text
from jira_context.jira.relationships import assemble_related_issues
from jira_context.jira.types import CleanComment, CleanIssue, IssueRef, RelationSource

DEFAULT_EPIC_LINK_FIELD = "customfield_10014"


def _issue_ref(raw: dict[str, Any]) -> IssueRef:
    return IssueRef(
        id=str(raw.get("id", "")),
        key=raw.get("key", ""),
        summary=(raw.get("fields") or {}).get("summary"),
    )


def clean_comment(comment: dict[str, Any]) -> CleanComment:
    """Normalise a raw comment: plain-text body plus the issues it mentions."""
    comment_id = str(comment.get("id", ""))
    nodes = document_content(comment.get("body"))
    author = comment.get("author") or {}

    return CleanComment(
        id=comment_id,
        body=extract_text(nodes),
        author=author.get("displayName"),
        created=comment.get("created"),
        updated=comment.get("updated"),
        mentions=extract_mentions(nodes, RelationSource.COMMENT, comment_id),
    )


def clean_issue(
    issue: dict[str, Any],
    epic_link_field: Optional[str] = DEFAULT_EPIC_LINK_FIELD,
) -> CleanIssue:
    """Normalise a raw issue into a compact representation.

    Comments are not attached here; see ``merge_comment_mentions``. The epic
    link summary is left unset because resolving it needs another request.
    """
    fields = issue.get("fields") or {}
    nodes = document_content(fields.get("description"))

    cleaned = CleanIssue(
        id=str(issue.get("id", "")),
        key=issue.get("key", ""),
        summary=fields.get("summary"),
        status=(fields.get("status") or {}).get("name"),
        created=fields.get("created"),
        updated=fields.get("updated"),
        description=extract_text(nodes),
        related_issues=assemble_related_issues(nodes, fields.get("issuelinks")),
    )

    if fields.get("parent"):
        cleaned.parent = _issue_ref(fields["parent"])

    epic_key = fields.get(epic_link_field) if epic_link_field else None
    if epic_key:
        cleaned.epic_link = IssueRef(id=str(epic_key), key=str(epic_key))

    subtasks = fields.get("subtasks") or []
    if subtasks:
        cleaned.children = [_issue_ref(subtask) for subtask in subtasks]

    return cleaned
