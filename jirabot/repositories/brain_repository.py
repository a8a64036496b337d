"""
Brain Repository - persistent key-value storage

The bot keeps durable state (saved filters) as JSON values under string
keys. Two backends:
- InMemoryBrain: process-local dict (tests, local runs)
- SupabaseBrain: `brain` table with `key` (text, primary key) and
  `value` (jsonb) columns
"""
import asyncio
import copy
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from jirabot.config import Settings
from jirabot.exceptions import ConfigurationMissing
from jirabot.utils.logger import get_logger

logger = get_logger(__name__)


class BrainRepository(ABC):
    """Opaque async key-value store"""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """
        Read a value

        Args:
            key: Storage key

        Returns:
            Stored JSON value, or None if the key is absent
        """

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """
        Write a value, replacing any previous one

        Args:
            key: Storage key
            value: JSON-serializable value
        """


class InMemoryBrain(BrainRepository):
    """Dict-backed brain; values are deep-copied in and out"""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial) if initial else {}

    async def get(self, key: str) -> Optional[Any]:
        return copy.deepcopy(self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)


class SupabaseBrain(BrainRepository):
    """Brain backed by a Supabase table"""

    def __init__(self, supabase_client=None, table_name: str = "brain"):
        """
        Initialize repository with Supabase client

        Args:
            supabase_client: Supabase client instance
            table_name: Table holding key/value rows
        """
        self.client = supabase_client
        self.table_name = table_name
        logger.info(f"SupabaseBrain initialized for table: {self.table_name}")

    @classmethod
    def from_settings(cls, settings: Settings) -> "SupabaseBrain":
        """
        Build a brain from SUPABASE_URL / SUPABASE_KEY

        Raises:
            ConfigurationMissing: If either setting is empty
        """
        if not settings.supabase_url or not settings.supabase_key:
            raise ConfigurationMissing(
                "SUPABASE_URL and SUPABASE_KEY are required for the supabase brain"
            )
        from supabase import create_client
        return cls(create_client(settings.supabase_url, settings.supabase_key))

    async def get(self, key: str) -> Optional[Any]:
        try:
            response = await asyncio.to_thread(
                lambda: self.client.table(self.table_name)
                .select("value")
                .eq("key", key)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to read brain key {key}: {e}")
            raise

        if not response.data:
            return None
        return response.data[0]["value"]

    async def set(self, key: str, value: Any) -> None:
        try:
            await asyncio.to_thread(
                lambda: self.client.table(self.table_name)
                .upsert({"key": key, "value": value}, on_conflict="key")
                .execute()
            )
            logger.debug(f"Stored brain key {key}")
        except Exception as e:
            logger.error(f"Failed to write brain key {key}: {e}")
            raise


def create_brain(settings: Settings) -> BrainRepository:
    """
    Select the brain backend from BRAIN_BACKEND

    Args:
        settings: Application settings

    Returns:
        Brain repository instance

    Raises:
        ConfigurationMissing: Unknown backend or missing Supabase settings
    """
    backend = settings.brain_backend.lower()
    if backend == "memory":
        return InMemoryBrain()
    if backend == "supabase":
        return SupabaseBrain.from_settings(settings)
    raise ConfigurationMissing(f"Unknown brain backend: {settings.brain_backend}")
