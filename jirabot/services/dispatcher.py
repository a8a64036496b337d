"""
Command Dispatcher

Routes inbound chat messages:
- Commands (search, watchers, filter management) go straight to the
  Jira client / filter repository and always get a reply, including an
  apology when the tracker fails.
- Everything else is scanned for issue keys; each key that passes the
  dedup window is fetched and announced. Failures stay silent so that
  word-like false positives do not spam the room.
"""
import asyncio
import re
from typing import Awaitable, Callable, List, Optional, Pattern, Tuple

from jirabot.config import Settings
from jirabot.exceptions import (
    ConfigurationMissing,
    FilterNotFound,
    StoreError,
    TrackerError,
)
from jirabot.models.schemas import ChatMessage, ChatReply, Filter
from jirabot.repositories.filter_repository import FilterRepository
from jirabot.services import formatter
from jirabot.services.dedup import DedupWindow
from jirabot.services.jira import JiraClient
from jirabot.services.scanner import extract_issue_keys
from jirabot.utils.logger import get_logger

logger = get_logger(__name__)

Reply = Callable[[ChatReply], Awaitable[None]]

_KEY = r"([A-Za-z][A-Za-z0-9]*-\d+)"
_NAME = r"(\S+)"


def _command(pattern: str) -> Pattern[str]:
    return re.compile(rf"^{pattern}$", re.IGNORECASE | re.DOTALL)


class CommandDispatcher:
    """Entry point for every inbound message"""

    def __init__(
        self,
        settings: Settings,
        jira: JiraClient,
        filters: FilterRepository,
        dedup: Optional[DedupWindow] = None
    ):
        """
        Args:
            settings: Application settings (bot name, ignore list, max list)
            jira: Jira API client
            filters: Saved filter repository
            dedup: Mention dedup window (built from JIRA_ISSUE_DELAY if None)
        """
        self.bot_name = settings.bot_name
        self.ignored_users = settings.IGNORED_USERS
        self.max_list = settings.jira_maxlist
        self.jira = jira
        self.filters = filters
        if dedup is None:
            dedup = DedupWindow(max_age_seconds=settings.jira_issue_delay)
        self.dedup = dedup

        self._address = re.compile(
            rf"^\s*@?{re.escape(self.bot_name)}[:,]?\s+", re.IGNORECASE
        )
        # Order matters: specific filter commands before the bare "filter NAME"
        self._commands: List[Tuple[Pattern[str], Callable[..., Awaitable[None]]]] = [
            (_command(r"save filter\s+(.+?)\s+as\s+" + _NAME), self._save_filter),
            (_command(r"delete filter\s+" + _NAME), self._delete_filter),
            (_command(r"use filter\s+" + _NAME), self._use_filter),
            (_command(r"(?:show\s+)?filters"), self._list_filters),
            (_command(r"show filter\s+" + _NAME), self._show_filter),
            (_command(r"filter\s+" + _NAME), self._use_filter),
            (_command(r"(?:show\s+)?watchers\s+(?:for\s+)?" + _KEY), self._watchers),
            (_command(r"search\s+(?:for\s+)?(.+)"), self._search),
        ]

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def handle(self, message: ChatMessage, reply: Reply) -> None:
        """
        Process one inbound message

        Args:
            message: Inbound chat message
            reply: Async callback that delivers a reply to the room
        """
        if message.user.lower() == self.bot_name.lower():
            return

        text = self._address.sub("", message.text.strip(), count=1)
        for pattern, handler in self._commands:
            match = pattern.match(text)
            if match:
                logger.info(f"{message.user} ran command: {text}")
                await handler(reply, *(g.strip() for g in match.groups()))
                return

        if message.user in self.ignored_users:
            logger.debug(f"Ignoring mentions from {message.user}")
            return

        await self.announce_mentions(message.text, reply)

    # ------------------------------------------------------------------
    # Mentions
    # ------------------------------------------------------------------

    async def announce_mentions(self, text: str, reply: Reply) -> int:
        """
        Announce every issue key in text that is outside its dedup window

        Fetches run concurrently and each reply is sent as soon as its
        fetch finishes, so replies may arrive out of mention order.

        Args:
            text: Message text
            reply: Reply callback

        Returns:
            Number of keys that passed the dedup window
        """
        keys = [key for key in extract_issue_keys(text) if self.dedup.should_announce(key)]
        if keys:
            await asyncio.gather(*(self._announce(key, reply) for key in keys))
        return len(keys)

    async def _announce(self, key: str, reply: Reply) -> None:
        try:
            issue = await self.jira.get_issue(key)
        except (TrackerError, ConfigurationMissing) as e:
            logger.info(f"Not announcing {key}: {e}")
            return
        await reply(formatter.format_issue_reply(issue))

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def _watchers(self, reply: Reply, key: str) -> None:
        key = key.upper()
        try:
            watchers = await self.jira.get_watchers(key)
        except (TrackerError, ConfigurationMissing) as e:
            logger.error(f"Watcher lookup for {key} failed: {e}")
            await reply(ChatReply(text=f"Sorry, I couldn't get the watchers for {key}: {e}"))
            return
        await reply(ChatReply(text=formatter.format_watchers(key, watchers)))

    async def _search(self, reply: Reply, jql: str) -> None:
        try:
            outcome, issues = await self.jira.search_issues(jql, self.max_list)
        except (TrackerError, ConfigurationMissing) as e:
            logger.error(f"Search failed for {jql!r}: {e}")
            await reply(ChatReply(text=f"Sorry, your search failed: {e}"))
            return
        text = formatter.format_search(outcome, issues, self.jira.navigator_url(jql))
        await reply(ChatReply(text=text))

    async def _load_filters(self, reply: Reply) -> bool:
        try:
            await self.filters.ensure_loaded()
        except StoreError as e:
            logger.error(f"Could not load saved filters: {e}")
            await reply(ChatReply(text=f"Sorry, I couldn't load the saved filters: {e}"))
            return False
        return True

    async def _save_filter(self, reply: Reply, query: str, name: str) -> None:
        if not await self._load_filters(reply):
            return
        try:
            await self.filters.upsert(Filter(name=name, query=query))
        except StoreError as e:
            await reply(ChatReply(text=f"Sorry, I couldn't save filter {name}: {e}"))
            return
        await reply(ChatReply(text=f"Filter {name} saved"))

    async def _delete_filter(self, reply: Reply, name: str) -> None:
        if not await self._load_filters(reply):
            return
        try:
            removed = await self.filters.delete(name)
        except StoreError as e:
            await reply(ChatReply(text=f"Sorry, I couldn't delete filter {name}: {e}"))
            return
        if not removed:
            await reply(ChatReply(text=f"Sorry, could not find filter {name}"))
            return
        await reply(ChatReply(text=f"Filter {name} deleted"))

    async def _use_filter(self, reply: Reply, name: str) -> None:
        if not await self._load_filters(reply):
            return
        try:
            saved = self.filters.get(name)
        except FilterNotFound:
            await reply(ChatReply(text=f"Sorry, could not find filter {name}"))
            return
        await self._search(reply, saved.query)

    async def _show_filter(self, reply: Reply, name: str) -> None:
        if not await self._load_filters(reply):
            return
        try:
            saved = self.filters.get(name)
        except FilterNotFound:
            await reply(ChatReply(text=f"Sorry, could not find filter {name}"))
            return
        await reply(ChatReply(text=formatter.format_filter(saved)))

    async def _list_filters(self, reply: Reply) -> None:
        if not await self._load_filters(reply):
            return
        await reply(ChatReply(text=formatter.format_filter_list(self.filters.all())))
