"""Jira types and models returned to callers."""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RelationKind(str, Enum):
    """How a related issue was discovered."""

    MENTION = "mention"
    LINK = "link"  # formal, typed issue link


class RelationSource(str, Enum):
    """Where in the issue a related issue was found."""

    DESCRIPTION = "description"
    COMMENT = "comment"


class CleanModel(BaseModel):
    """Base for compact records: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict:
        """Serialize the way the tool layer emits records."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class RelatedIssue(CleanModel):
    """Cross-reference from one issue to another."""

    key: str = Field(..., description="Referenced issue key (e.g., PROJ-123)")
    summary: Optional[str] = Field(None, description="Referenced issue summary, when known")
    # Serialized as "type", the field name tool consumers already read
    kind: RelationKind = Field(..., alias="type", description="mention or formal link")
    relationship: Optional[str] = Field(None, description='Link label, e.g. "is blocked by"')
    source: RelationSource = Field(..., description="description or comment")
    comment_id: Optional[str] = Field(None, description="Comment the mention came from")


class IssueRef(CleanModel):
    """Pointer to a parent, child or epic issue."""

    id: str
    key: str
    summary: Optional[str] = None


class CleanComment(CleanModel):
    """Compact comment with plain-text body."""

    id: str
    body: str = ""
    author: Optional[str] = None
    created: Optional[str] = None
    updated: Optional[str] = None
    mentions: list[RelatedIssue] = Field(default_factory=list)


class CleanIssue(CleanModel):
    """Compact issue with plain-text description and relationship list."""

    id: str
    key: str
    summary: Optional[str] = None
    status: Optional[str] = None
    created: Optional[str] = None
    updated: Optional[str] = None
    description: str = ""
    comments: Optional[list[CleanComment]] = None
    parent: Optional[IssueRef] = None
    children: Optional[list[IssueRef]] = None
    epic_link: Optional[IssueRef] = None
    related_issues: list[RelatedIssue] = Field(default_factory=list)


class SearchResult(CleanModel):
    """Result of a JQL search."""

    total: int
    issues: list[CleanIssue] = Field(default_factory=list)


class Transition(CleanModel):
    """Workflow transition available on an issue."""

    id: str
    name: str
    to_status: Optional[str] = None


class CreatedIssue(CleanModel):
    """Identifiers of a newly created issue."""

    id: str
    key: str


class Attachment(CleanModel):
    """Uploaded attachment."""

    id: str
    filename: str
