"""
Data models
"""
from jirabot.models.schemas import (
    NO_ASSIGNEE,
    NO_FIX_VERSION,
    NO_STATUS,
    Attachment,
    AttachmentField,
    ChatMessage,
    ChatReply,
    Filter,
    Issue,
    MessageResponse,
    SearchOutcome,
)

__all__ = [
    "NO_ASSIGNEE",
    "NO_FIX_VERSION",
    "NO_STATUS",
    "Attachment",
    "AttachmentField",
    "ChatMessage",
    "ChatReply",
    "Filter",
    "Issue",
    "MessageResponse",
    "SearchOutcome",
]
