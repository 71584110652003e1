"""Jira REST client, ADF extraction and compact issue records."""

from jira_context.jira.client import JiraService
from jira_context.jira.types import (
    Attachment,
    CleanComment,
    CleanIssue,
    CreatedIssue,
    IssueRef,
    RelatedIssue,
    RelationKind,
    RelationSource,
    SearchResult,
    Transition,
)

__all__ = [
    "Attachment",
    "CleanComment",
    "CleanIssue",
    "CreatedIssue",
    "IssueRef",
    "JiraService",
    "RelatedIssue",
    "RelationKind",
    "RelationSource",
    "SearchResult",
    "Transition",
]
