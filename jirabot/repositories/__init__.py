"""
Repositories package for persistent state

Provides:
- Brain key-value storage (InMemoryBrain, SupabaseBrain)
- Saved JQL filters (FilterRepository)
"""
from jirabot.repositories.brain_repository import (
    BrainRepository,
    InMemoryBrain,
    SupabaseBrain,
    create_brain,
)
from jirabot.repositories.filter_repository import FilterRepository

__all__ = [
    "BrainRepository",
    "InMemoryBrain",
    "SupabaseBrain",
    "create_brain",
    "FilterRepository",
]
