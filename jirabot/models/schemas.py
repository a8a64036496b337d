"""
Pydantic models for JiraBot

Normalized tracker data (Issue, SearchOutcome), persisted filters,
and the chat-facing message/reply/attachment payloads.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

NO_ASSIGNEE = "no assignee"
NO_FIX_VERSION = "no fix version"
NO_STATUS = "no status"


# ============================================================================
# Tracker Models
# ============================================================================

class Issue(BaseModel):
    """
    Normalized Jira issue.

    Built from either the current or the legacy REST schema; both produce
    identical values for the same ticket. Constructed fresh on every fetch.

    Attributes:
        key: Tracker-assigned key (e.g. "ABC-123")
        summary: One-line title
        status: Workflow status name
        assignee_name: Assignee display name, or "no assignee"
        fix_versions: Fix version names in API order
        type: Issue type name
        priority: Priority name
        reporter_name: Reporter display name
        description: Issue body
        due_date: Due date as returned by Jira (YYYY-MM-DD)
        icon_url: Issue-type icon URL
        browse_url: Web URL of the issue
    """
    model_config = ConfigDict(frozen=True)

    key: str = Field(..., min_length=1)
    summary: str = ""
    status: Optional[str] = None
    assignee_name: str = NO_ASSIGNEE
    fix_versions: List[str] = Field(default_factory=list)
    type: Optional[str] = None
    priority: Optional[str] = None
    reporter_name: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[str] = None
    icon_url: Optional[str] = None
    browse_url: str

    @property
    def fix_versions_text(self) -> str:
        """Comma-joined fix versions, or "no fix version" when empty"""
        if self.fix_versions:
            return ", ".join(self.fix_versions)
        return NO_FIX_VERSION

    @property
    def has_assignee(self) -> bool:
        return self.assignee_name != NO_ASSIGNEE


class SearchOutcome(BaseModel):
    """Result of a JQL search, capped at the listing threshold"""
    jql: str
    total: int = Field(..., ge=0)
    keys: List[str] = Field(default_factory=list)
    too_many: bool = False


# ============================================================================
# Filter Models
# ============================================================================

class Filter(BaseModel):
    """Named, reusable JQL query"""
    name: str = Field(..., min_length=1)
    query: str = Field(..., min_length=1)

    @field_validator("name", "query")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    def matches(self, name: str) -> bool:
        """Case-insensitive name comparison"""
        return self.name.lower() == name.strip().lower()


# ============================================================================
# Chat Models
# ============================================================================

class AttachmentField(BaseModel):
    """One labelled attribute shown in a rich attachment"""
    title: str
    value: str
    short: bool = True


class Attachment(BaseModel):
    """Rich message attachment for a single issue"""
    fallback: str
    title: str
    title_link: str
    author_name: Optional[str] = None
    author_icon: Optional[str] = None
    text: Optional[str] = None
    fields: List[AttachmentField] = Field(default_factory=list)


class ChatMessage(BaseModel):
    """Inbound chat message delivered by the chat transport"""
    user: str = Field(..., min_length=1)
    text: str
    room: Optional[str] = None


class ChatReply(BaseModel):
    """Outbound reply rendered by the chat transport"""
    text: str
    attachments: List[Attachment] = Field(default_factory=list)


class MessageResponse(BaseModel):
    """Replies produced for one inbound message"""
    replies: List[ChatReply] = Field(default_factory=list)
