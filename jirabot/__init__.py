"""
JiraBot - Jira issue announcements and saved searches for chat
"""
__version__ = "1.0.0"
