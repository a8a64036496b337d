"""
Issue key scanner

Finds Jira issue keys ("ABC-123") in free-form chat text.
"""
import re
from typing import List

# Prefix must start with a letter; \b on both sides rejects "ABC-123x"
# and "xABC" glued to a word character, but allows punctuation.
ISSUE_KEY_PATTERN = re.compile(r"\b([A-Za-z][A-Za-z0-9]*-\d+)\b")


def extract_issue_keys(text: str) -> List[str]:
    """
    Extract distinct issue keys from text

    Args:
        text: Raw message text

    Returns:
        Upper-cased keys in order of first occurrence, without duplicates
    """
    if not text:
        return []

    keys: List[str] = []
    seen = set()
    for match in ISSUE_KEY_PATTERN.finditer(text):
        key = match.group(1).upper()
        if key not in seen:
            seen.add(key)
            keys.append(key)
    return keys
