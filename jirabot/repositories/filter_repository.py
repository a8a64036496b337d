"""
Filter Repository - named JQL filters

Keeps the ordered filter list in memory and writes the whole list through
to the brain under a single key on every change.

Lifecycle: UNINITIALIZED -> LOADED. Mutations made before the brain has
been read are applied to the in-memory list and also queued; once the
stored list arrives it replaces the in-memory list and the queue is
replayed on top of it, so early writes survive a late load.

A write that the brain rejects is rolled back in memory and surfaces
as StoreError, so memory never runs ahead of the stored copy.
"""
import asyncio
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple

from pydantic import ValidationError

from jirabot.exceptions import FilterNotFound, StoreError
from jirabot.models.schemas import Filter
from jirabot.repositories.brain_repository import BrainRepository
from jirabot.utils.logger import get_logger

logger = get_logger(__name__)

FILTERS_KEY = "jira-filters"


class StoreState(str, Enum):
    """Load state of the filter store"""
    UNINITIALIZED = "uninitialized"
    LOADED = "loaded"


class FilterRepository:
    """Case-insensitive CRUD over saved filters"""

    def __init__(self, brain: BrainRepository, key: str = FILTERS_KEY):
        """
        Args:
            brain: Persistent key-value store
            key: Brain key holding the filter list
        """
        self.brain = brain
        self.key = key
        self.state = StoreState.UNINITIALIZED
        self._filters: List[Filter] = []
        self._pending: List[Callable[[], Any]] = []
        self._load_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """
        Read the stored list from the brain and replay queued mutations

        If nothing is stored the list starts empty and nothing is written
        until the first mutation.

        Raises:
            StoreError: If the brain cannot be read or the replayed list
                cannot be written
        """
        try:
            stored = await self.brain.get(self.key)
        except Exception as e:
            logger.error(f"Failed to read filters from brain: {e}")
            raise StoreError(f"could not read saved filters: {e}") from e

        if stored is not None:
            self._filters = self._parse(stored)
            logger.info(f"Loaded {len(self._filters)} filters from brain")
        else:
            self._filters = []
            logger.info("No stored filters found")

        pending, self._pending = self._pending, []
        for operation in pending:
            operation()

        self.state = StoreState.LOADED

        if pending:
            logger.info(f"Replayed {len(pending)} filter changes made before load")
            await self._persist()

    async def ensure_loaded(self) -> None:
        """Load once; concurrent callers share the same load, a failed load is retried"""
        if self.state is StoreState.LOADED:
            return
        if self._load_task is None:
            self._load_task = asyncio.ensure_future(self.load())
        try:
            await self._load_task
        except StoreError:
            if self.state is not StoreState.LOADED:
                self._load_task = None
            raise

    @property
    def is_loaded(self) -> bool:
        return self.state is StoreState.LOADED

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def add(self, saved: Filter) -> None:
        """
        Append a filter and persist the full list

        Does not enforce name uniqueness; use upsert() to replace.

        Args:
            saved: Filter to append

        Raises:
            StoreError: If the write fails; the in-memory list is left unchanged
        """
        await self._mutate(lambda: self._filters.append(saved))
        logger.info(f"Added filter {saved.name}")

    async def delete(self, name: str) -> int:
        """
        Remove every filter whose name matches case-insensitively

        Args:
            name: Filter name

        Returns:
            Number of filters removed

        Raises:
            StoreError: If the write fails; the in-memory list is left unchanged
        """
        removed = sum(1 for f in self._filters if f.matches(name))

        def _delete() -> None:
            self._filters = [f for f in self._filters if not f.matches(name)]

        await self._mutate(_delete)
        logger.info(f"Deleted {removed} filter(s) named {name}")
        return removed

    async def upsert(self, saved: Filter) -> None:
        """
        Save a filter, replacing any filter with the same name

        The removal and the append are written in one go, so a failed
        write never loses the previous filter.

        Args:
            saved: Filter to save
        """
        def _upsert() -> None:
            self._filters = [f for f in self._filters if not f.matches(saved.name)]
            self._filters.append(saved)

        await self._mutate(_upsert)
        logger.info(f"Saved filter {saved.name}")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find(self, name: str) -> Optional[Filter]:
        """
        Args:
            name: Filter name (case-insensitive)

        Returns:
            First matching filter in insertion order, or None
        """
        for f in self._filters:
            if f.matches(name):
                return f
        return None

    def get(self, name: str) -> Filter:
        """
        Args:
            name: Filter name (case-insensitive)

        Returns:
            First matching filter in insertion order

        Raises:
            FilterNotFound: If no filter has that name
        """
        found = self.find(name)
        if found is None:
            raise FilterNotFound(name)
        return found

    def all(self) -> Tuple[Filter, ...]:
        """All filters in insertion order"""
        return tuple(self._filters)

    def __len__(self) -> int:
        return len(self._filters)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _mutate(self, operation: Callable[[], Any]) -> None:
        if not self.is_loaded:
            operation()
            self._pending.append(operation)
            logger.debug("Filter store not loaded yet, deferring write")
            return

        previous = list(self._filters)
        operation()
        try:
            await self._persist()
        except StoreError:
            self._filters = previous
            raise

    async def _persist(self) -> None:
        try:
            await self.brain.set(self.key, [f.model_dump() for f in self._filters])
        except Exception as e:
            logger.error(f"Failed to write filters to brain: {e}")
            raise StoreError(f"could not write saved filters: {e}") from e

    def _parse(self, stored: Any) -> List[Filter]:
        if not isinstance(stored, list):
            logger.warning(f"Ignoring malformed filter list under {self.key}")
            return []

        filters = []
        for item in stored:
            try:
                filters.append(Filter.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping malformed stored filter {item!r}: {e}")
        return filters
