"""Assemble an issue's relatedIssues list from mentions and formal links."""
from typing import Any, Iterable, Optional

from jira_context.jira.adf import NodeInput, extract_mentions
from jira_context.jira.types import (
    CleanComment,
    CleanIssue,
    RelatedIssue,
    RelationKind,
    RelationSource,
)


def _formal_link(link: dict[str, Any]) -> Optional[RelatedIssue]:
    link_type = link.get("type") or {}
    if link.get("inwardIssue"):
        linked = link["inwardIssue"]
        relationship = link_type.get("inward") or link_type.get("outward")
    elif link.get("outwardIssue"):
        linked = link["outwardIssue"]
        relationship = link_type.get("outward") or link_type.get("inward")
    else:
        return None

    return RelatedIssue(
        key=linked.get("key", ""),
        summary=(linked.get("fields") or {}).get("summary"),
        kind=RelationKind.LINK,
        relationship=relationship,
        source=RelationSource.DESCRIPTION,
    )


def formal_links(issuelinks: Optional[Iterable[dict[str, Any]]]) -> list[RelatedIssue]:
    """Convert Jira ``issuelinks`` 1:1, keeping the order and duplicates Jira returns."""
    related = []
    for link in issuelinks or []:
        if not isinstance(link, dict):
            continue
        entry = _formal_link(link)
        if entry is not None:
            related.append(entry)
    return related


def assemble_related_issues(
    description_nodes: Optional[Iterable[NodeInput]],
    issuelinks: Optional[Iterable[dict[str, Any]]],
) -> list[RelatedIssue]:
    """Description mentions first, then formal links. No merging between the two."""
    related = extract_mentions(description_nodes, RelationSource.DESCRIPTION)
    related.extend(formal_links(issuelinks))
    return related


def merge_comment_mentions(issue: CleanIssue, comments: list[CleanComment]) -> CleanIssue:
    """Attach comments and append their mentions, in comment order."""
    for comment in comments:
        issue.related_issues.extend(comment.mentions)
    issue.comments = comments
    return issue
