"""
Business Logic Services
"""
from .dedup import DedupWindow
from .dispatcher import CommandDispatcher
from .jira import JiraClient
from .scanner import extract_issue_keys

__all__ = [
    "CommandDispatcher",
    "DedupWindow",
    "JiraClient",
    "extract_issue_keys",
]
