"""
Dedup window for issue announcements

Remembers when each issue key was last announced and suppresses
repeats until the entry ages out. The first mention starts the clock;
suppressed mentions do not refresh it.
"""
import time
from typing import Callable, Dict

from jirabot.utils.logger import get_logger

logger = get_logger(__name__)


class DedupWindow:
    """Per-key announcement gate with lazy expiry"""

    def __init__(
        self,
        max_age_seconds: float = 10,
        clock: Callable[[], float] = time.time
    ):
        """
        Args:
            max_age_seconds: How long a key stays suppressed after announcement
            clock: Wall-clock source returning seconds
        """
        self.max_age_seconds = max_age_seconds
        self._clock = clock
        self._seen: Dict[str, float] = {}

    def should_announce(self, key: str) -> bool:
        """
        Check whether an issue key may be announced now

        Expires stale entries first, so a key whose window just elapsed
        is immediately eligible again.

        Args:
            key: Issue key

        Returns:
            True if the key was recorded and should be announced,
            False if it is still inside its window
        """
        now = self._clock()
        self._expire(now)

        if key in self._seen:
            logger.debug(f"Suppressing repeat mention of {key}")
            return False

        self._seen[key] = now
        return True

    def _expire(self, now: float) -> None:
        # O(n) over live entries
        expired = [
            key for key, seen_at in self._seen.items()
            if now - seen_at > self.max_age_seconds
        ]
        for key in expired:
            del self._seen[key]

    def clear(self) -> None:
        """Forget every tracked key"""
        self._seen.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._seen

    def __len__(self) -> int:
        return len(self._seen)
