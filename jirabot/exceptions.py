"""
Error taxonomy for JiraBot

Tracker failures are raised by JiraClient and converted at the
dispatcher boundary: silence for incidental mentions, an apology
reply for user-initiated commands.
"""
from typing import List, Optional


class JiraBotError(Exception):
    """Base class for all JiraBot errors"""


class ConfigurationMissing(JiraBotError):
    """Required configuration (URL or credentials) is absent"""


class FilterNotFound(JiraBotError):
    """Named filter does not exist in the filter store"""

    def __init__(self, name: str):
        super().__init__(f"could not find filter {name}")
        self.name = name


class TrackerError(JiraBotError):
    """Base class for failures talking to the Jira REST API"""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class TransportError(TrackerError):
    """Network, DNS, connection or timeout failure"""


class DecodeError(TrackerError):
    """Response body was not valid JSON"""


class ApiError(TrackerError):
    """Jira answered with a well-formed error payload"""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        status_code: Optional[int] = None,
        error_messages: Optional[List[str]] = None
    ):
        super().__init__(message, path)
        self.status_code = status_code
        self.error_messages = error_messages or []


class NotFound(ApiError):
    """Issue (or other resource) does not exist"""


class StoreError(JiraBotError):
    """Persistent key-value store could not be read or written"""
