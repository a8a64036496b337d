"""
pytest configuration and shared fixtures
"""
from typing import Callable, List

import pytest

from jirabot.config import Settings
from jirabot.models.schemas import ChatReply
from jirabot.repositories.brain_repository import InMemoryBrain
from jirabot.repositories.filter_repository import FilterRepository
from jirabot.services.jira import JiraClient
from jirabot.tests.fakes import FakeJira, make_settings


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def fake_jira() -> FakeJira:
    return FakeJira()


@pytest.fixture
def jira_client(settings, fake_jira) -> JiraClient:
    return JiraClient(settings, transport=fake_jira.transport)


@pytest.fixture
def brain() -> InMemoryBrain:
    return InMemoryBrain()


@pytest.fixture
def filter_repo(brain) -> FilterRepository:
    return FilterRepository(brain)


@pytest.fixture
def replies() -> List[ChatReply]:
    return []


@pytest.fixture
def collect(replies) -> Callable:
    """Reply callback appending to the replies fixture"""
    async def _collect(reply: ChatReply) -> None:
        replies.append(reply)
    return _collect
