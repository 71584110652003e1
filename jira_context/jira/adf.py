"""Atlassian Document Format (ADF) helpers.

Jira returns descriptions and comment bodies as a nested node tree. This module
folds that tree two ways: into plain text, and into the list of issue keys it
mentions (auto-linked inline cards plus bare keys in text).
"""
import re
from enum import Enum
from typing import Any, Iterable, Optional, Union

from pydantic import BaseModel, ConfigDict, field_validator

from jira_context.jira.types import RelatedIssue, RelationKind, RelationSource

BROWSE_URL_PATTERN = re.compile(r"/browse/([A-Z]+-\d+)")
ISSUE_KEY_PATTERN = re.compile(r"[A-Z]+-\d+")


class AdfNodeKind(str, Enum):
    """Node shapes the extractor distinguishes. Everything else is OTHER."""

    TEXT = "text"
    INLINE_CARD = "inlineCard"
    CONTAINER = "container"
    OTHER = "other"


class AdfNode(BaseModel):
    """One ADF node. Unknown attributes are ignored."""

    model_config = ConfigDict(extra="ignore")

    type: str = ""
    text: Optional[str] = None
    attrs: dict[str, Any] = {}
    content: Optional[list["AdfNode"]] = None

    @field_validator("attrs", mode="before")
    @classmethod
    def _attrs_as_dict(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    @field_validator("text", mode="before")
    @classmethod
    def _text_as_str(cls, value: Any) -> Any:
        return value if isinstance(value, str) else None

    @field_validator("content", mode="before")
    @classmethod
    def _content_as_node_list(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return None
        return [item for item in value if isinstance(item, (dict, AdfNode))]

    @property
    def kind(self) -> AdfNodeKind:
        if self.type == "text":
            return AdfNodeKind.TEXT
        if self.type == "inlineCard":
            return AdfNodeKind.INLINE_CARD
        if self.content is not None:
            return AdfNodeKind.CONTAINER
        return AdfNodeKind.OTHER

    @property
    def children(self) -> list["AdfNode"]:
        return self.content or []


NodeInput = Union[AdfNode, dict[str, Any]]


def parse_nodes(nodes: Optional[Iterable[Any]]) -> list[AdfNode]:
    """Coerce raw JSON content into nodes, skipping anything that is not a node."""
    if not isinstance(nodes, (list, tuple)):
        return []
    parsed = []
    for node in nodes:
        if isinstance(node, AdfNode):
            parsed.append(node)
        elif isinstance(node, dict):
            parsed.append(AdfNode.model_validate(node))
    return parsed


def document_content(document: Any) -> list[AdfNode]:
    """Top-level nodes of an ADF document (``{"type": "doc", "content": [...]}``)."""
    if not isinstance(document, dict):
        return []
    return parse_nodes(document.get("content"))


def _text_of(node: AdfNode) -> str:
    if node.kind is AdfNodeKind.TEXT:
        return node.text or ""
    if node.content is not None:
        return "".join(_text_of(child) for child in node.children)
    return ""


def extract_text(nodes: Optional[Iterable[NodeInput]]) -> str:
    """Concatenate the text of every text node, depth-first, without separators."""
    return "".join(_text_of(node) for node in parse_nodes(nodes))


def _keys_in(node: AdfNode) -> Iterable[str]:
    if node.kind is AdfNodeKind.INLINE_CARD:
        match = BROWSE_URL_PATTERN.search(str(node.attrs.get("url") or ""))
        if match:
            yield match.group(1)
    elif node.kind is AdfNodeKind.TEXT and node.text:
        yield from ISSUE_KEY_PATTERN.findall(node.text)

    for child in node.children:
        yield from _keys_in(child)


def extract_mentions(
    nodes: Optional[Iterable[NodeInput]],
    source: RelationSource,
    comment_id: Optional[str] = None,
) -> list[RelatedIssue]:
    """Collect issue keys referenced in the tree, deduplicated by key.

    Order follows the first occurrence of each key.
    """
    mentions: dict[str, RelatedIssue] = {}
    for node in parse_nodes(nodes):
        for key in _keys_in(node):
            if key in mentions:
                continue
            mentions[key] = RelatedIssue(
                key=key,
                kind=RelationKind.MENTION,
                source=source,
                comment_id=comment_id,
            )
    return list(mentions.values())


def text_to_adf(text: str) -> dict[str, Any]:
    """Wrap plain text in a single-paragraph ADF document."""
    return {
        "type": "doc",
        "version": 1,
        "content": [
            {
                "type": "paragraph",
                "content": [{"type": "text", "text": text}],
            }
        ],
    }
