"""
Tests for CommandDispatcher

Covers the mention pipeline (scan, dedup, fetch, format) and every
command intent, including failure replies.
"""
import httpx
import pytest
from unittest.mock import AsyncMock, patch

from jirabot.exceptions import TransportError
from jirabot.models.schemas import ChatMessage
from jirabot.repositories.filter_repository import FILTERS_KEY, FilterRepository
from jirabot.services.dedup import DedupWindow
from jirabot.services.dispatcher import CommandDispatcher
from jirabot.tests.fakes import FailingBrain, FakeClock, current_issue_payload, make_settings


def search_payload(keys, total=None):
    return {"total": len(keys) if total is None else total, "issues": [{"key": k} for k in keys]}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def dispatcher(settings, jira_client, filter_repo, clock):
    dedup = DedupWindow(max_age_seconds=settings.jira_issue_delay, clock=clock)
    return CommandDispatcher(settings, jira_client, filter_repo, dedup=dedup)


def msg(text, user="alice"):
    return ChatMessage(user=user, text=text, room="general")


class TestMentions:
    """Test the mention pipeline"""

    @pytest.mark.asyncio
    async def test_mention_announces_issue(self, dispatcher, fake_jira, collect, replies):
        fake_jira.routes["issue/ABC-123"] = current_issue_payload()

        await dispatcher.handle(msg("check out ABC-123 please"), collect)

        assert fake_jira.issue_fetches() == ["issue/ABC-123"]
        assert len(replies) == 1
        assert replies[0].text.startswith("[ABC-123] Login fails after password reset.")
        assert replies[0].attachments[0].title_link.endswith("/browse/ABC-123")

    @pytest.mark.asyncio
    async def test_dedup_window_scenario(self, dispatcher, fake_jira, collect, clock):
        fake_jira.routes["issue/ABC-123"] = current_issue_payload()

        await dispatcher.handle(msg("check out ABC-123 please"), collect)
        assert len(fake_jira.issue_fetches()) == 1

        clock.advance(5)
        await dispatcher.handle(msg("ABC-123 again?"), collect)
        assert len(fake_jira.issue_fetches()) == 1

        clock.advance(6)
        await dispatcher.handle(msg("still looking at ABC-123"), collect)
        assert len(fake_jira.issue_fetches()) == 2

    @pytest.mark.asyncio
    async def test_multiple_keys_each_fetched_once(self, dispatcher, fake_jira, collect, replies):
        fake_jira.routes["issue/ABC-1"] = current_issue_payload("ABC-1")
        fake_jira.routes["issue/XYZ-2"] = current_issue_payload("XYZ-2")

        await dispatcher.handle(msg("ABC-1, XYZ-2 and abc-1 again"), collect)

        assert sorted(fake_jira.issue_fetches()) == ["issue/ABC-1", "issue/XYZ-2"]
        assert sorted(r.text[:7] for r in replies) == ["[ABC-1]", "[XYZ-2]"]

    @pytest.mark.asyncio
    async def test_unknown_issue_is_silent(self, dispatcher, collect, replies):
        await dispatcher.handle(msg("UTF-8 is an encoding"), collect)
        assert replies == []

    @pytest.mark.asyncio
    async def test_transport_failure_is_silent(self, dispatcher, fake_jira, collect, replies):
        fake_jira.routes["issue/ABC-1"] = httpx.ConnectError("down")
        await dispatcher.handle(msg("ABC-1"), collect)
        assert replies == []

    @pytest.mark.asyncio
    async def test_one_failure_does_not_block_others(self, dispatcher, fake_jira, collect, replies):
        fake_jira.routes["issue/ABC-2"] = current_issue_payload("ABC-2")
        await dispatcher.handle(msg("ABC-1 ABC-2"), collect)
        assert [r.text[:7] for r in replies] == ["[ABC-2]"]

    @pytest.mark.asyncio
    async def test_ignored_user(self, jira_client, filter_repo, fake_jira, collect, replies):
        settings = make_settings(jira_ignore_users="ci-bot, deploy-bot")
        dispatcher = CommandDispatcher(settings, jira_client, filter_repo)
        fake_jira.routes["issue/ABC-1"] = current_issue_payload("ABC-1")

        await dispatcher.handle(msg("built ABC-1", user="deploy-bot"), collect)

        assert fake_jira.requests == []
        assert replies == []

    @pytest.mark.asyncio
    async def test_ignored_user_can_run_commands(self, jira_client, filter_repo, fake_jira, collect, replies):
        settings = make_settings(jira_ignore_users="deploy-bot")
        dispatcher = CommandDispatcher(settings, jira_client, filter_repo)
        fake_jira.routes["issue/ABC-1/watchers"] = {"watchers": [{"displayName": "Amy"}]}

        await dispatcher.handle(msg("watchers ABC-1", user="deploy-bot"), collect)

        assert [r.text for r in replies] == ["Watchers of ABC-1: Amy"]

    @pytest.mark.asyncio
    async def test_own_messages_ignored(self, dispatcher, fake_jira, collect, replies):
        await dispatcher.handle(msg("[ABC-1] Something. x / y", user="jirabot"), collect)
        assert fake_jira.requests == []

    @pytest.mark.asyncio
    async def test_dedup_built_from_settings(self, jira_client, filter_repo):
        dispatcher = CommandDispatcher(make_settings(jira_issue_delay=42), jira_client, filter_repo)
        assert dispatcher.dedup.max_age_seconds == 42

    @pytest.mark.asyncio
    async def test_injected_empty_dedup_window_is_used(self, settings, jira_client, filter_repo):
        window = DedupWindow(max_age_seconds=60)
        dispatcher = CommandDispatcher(settings, jira_client, filter_repo, dedup=window)
        assert dispatcher.dedup is window


class TestWatchersCommand:
    """Test watcher listing"""

    @pytest.mark.parametrize("text", [
        "show watchers for ABC-1",
        "watchers ABC-1",
        "jirabot: watchers abc-1",
        "@jirabot show watchers for ABC-1",
    ])
    @pytest.mark.asyncio
    async def test_watchers(self, dispatcher, fake_jira, collect, replies, text):
        fake_jira.routes["issue/ABC-1/watchers"] = {
            "watchers": [{"displayName": "Amy"}, {"displayName": "Zed"}]
        }

        await dispatcher.handle(msg(text), collect)

        assert [r.text for r in replies] == ["Watchers of ABC-1: Amy, Zed"]
        assert fake_jira.issue_fetches() == []

    @pytest.mark.asyncio
    async def test_watchers_failure_replies(self, dispatcher, collect, replies):
        await dispatcher.handle(msg("watchers ABC-404"), collect)
        assert replies[0].text.startswith("Sorry, I couldn't get the watchers for ABC-404")


class TestSearchCommand:
    """Test search"""

    @pytest.mark.asyncio
    async def test_search_lists_results(self, dispatcher, fake_jira, collect, replies):
        keys = [f"ABC-{i}" for i in range(1, 6)]
        fake_jira.routes["search/"] = search_payload(keys)
        for key in keys:
            fake_jira.routes[f"issue/{key}"] = current_issue_payload(key)

        await dispatcher.handle(msg("search for project = ABC"), collect)

        assert len(replies) == 1
        lines = replies[0].text.split("\n")
        assert lines[0].startswith("I found 5 issues for your search. ")
        assert "jqlQuery=project%20%3D%20ABC" in lines[0]
        assert [line[:7] for line in lines[1:]] == [f"[{k}]" for k in keys]

    @pytest.mark.asyncio
    async def test_search_too_many(self, dispatcher, fake_jira, collect, replies):
        fake_jira.routes["search/"] = search_payload([], total=50)

        await dispatcher.handle(msg("search project = ABC"), collect)

        assert replies[0].text.endswith("(too many to list)")
        assert "I found 50 issues" in replies[0].text
        assert fake_jira.issue_fetches() == []

    @pytest.mark.asyncio
    async def test_search_does_not_trigger_mentions(self, dispatcher, fake_jira, collect, replies):
        fake_jira.routes["search/"] = search_payload([])
        await dispatcher.handle(msg("search key = ABC-1"), collect)
        assert fake_jira.issue_fetches() == []
        assert len(replies) == 1

    @pytest.mark.asyncio
    async def test_search_failure_replies(self, dispatcher, collect, replies):
        with patch.object(
            dispatcher.jira, "search_issues", new_callable=AsyncMock
        ) as mock_search:
            mock_search.side_effect = TransportError("connection refused")
            await dispatcher.handle(msg("search project = ABC"), collect)

        assert replies[0].text == "Sorry, your search failed: connection refused"


class TestFilterCommands:
    """Test saved filter commands"""

    @pytest.mark.asyncio
    async def test_save_twice_keeps_one(self, dispatcher, filter_repo, brain, collect, replies):
        await dispatcher.handle(msg("save filter project = X as myfilter"), collect)
        await dispatcher.handle(msg("save filter project = Y as myfilter"), collect)

        assert [(f.name, f.query) for f in filter_repo.all()] == [("myfilter", "project = Y")]
        assert await brain.get(FILTERS_KEY) == [{"name": "myfilter", "query": "project = Y"}]
        assert [r.text for r in replies] == ["Filter myfilter saved", "Filter myfilter saved"]

    @pytest.mark.asyncio
    async def test_save_query_containing_as(self, dispatcher, filter_repo, collect):
        await dispatcher.handle(msg("save filter summary ~ \"as is\" as quirky"), collect)
        assert filter_repo.get("quirky").query == "summary ~ \"as is\""

    @pytest.mark.asyncio
    async def test_show_filter(self, dispatcher, collect, replies):
        await dispatcher.handle(msg("save filter assignee = me as Mine"), collect)
        await dispatcher.handle(msg("show filter mine"), collect)
        assert replies[-1].text == "Mine: assignee = me"

    @pytest.mark.parametrize("text", ["show filters", "filters", "jirabot, filters"])
    @pytest.mark.asyncio
    async def test_list_filters(self, dispatcher, collect, replies, text):
        await dispatcher.handle(msg("save filter a = 1 as one"), collect)
        await dispatcher.handle(msg("save filter b = 2 as two"), collect)
        await dispatcher.handle(msg(text), collect)
        assert replies[-1].text == "Found 2 saved filters:\none: a = 1\ntwo: b = 2"

    @pytest.mark.asyncio
    async def test_delete_filter(self, dispatcher, filter_repo, collect, replies):
        await dispatcher.handle(msg("save filter a = 1 as one"), collect)
        await dispatcher.handle(msg("delete filter ONE"), collect)

        assert replies[-1].text == "Filter ONE deleted"
        assert filter_repo.all() == ()

    @pytest.mark.asyncio
    async def test_delete_missing_filter(self, dispatcher, collect, replies):
        await dispatcher.handle(msg("delete filter ghost"), collect)
        assert replies[-1].text == "Sorry, could not find filter ghost"

    @pytest.mark.parametrize("text", ["use filter open", "filter OPEN"])
    @pytest.mark.asyncio
    async def test_use_filter_runs_search(self, dispatcher, fake_jira, collect, replies, text):
        fake_jira.routes["search/"] = search_payload([], total=0)
        await dispatcher.handle(msg("save filter status = Open as open"), collect)

        await dispatcher.handle(msg(text), collect)

        assert fake_jira.requests[-1].url.params["jql"] == "status = Open"
        assert replies[-1].text.startswith("I found 0 issues for your search.")

    @pytest.mark.parametrize("text", ["use filter ghost", "filter ghost", "show filter ghost"])
    @pytest.mark.asyncio
    async def test_unknown_filter(self, dispatcher, fake_jira, collect, replies, text):
        await dispatcher.handle(msg(text), collect)
        assert len(replies) == 1
        assert replies[0].text == "Sorry, could not find filter ghost"
        assert fake_jira.requests == []

    @pytest.mark.asyncio
    async def test_filter_commands_load_store_first(self, settings, jira_client, brain, filter_repo, collect, replies):
        await brain.set(FILTERS_KEY, [{"name": "stored", "query": "project = S"}])
        dispatcher = CommandDispatcher(settings, jira_client, filter_repo)

        await dispatcher.handle(msg("show filter stored"), collect)

        assert filter_repo.is_loaded
        assert replies[0].text == "stored: project = S"


class TestFilterStoreFailures:
    """Test apologies when the brain fails"""

    @pytest.mark.asyncio
    async def test_save_failure_replies_and_stores_nothing(self, settings, jira_client, collect, replies):
        brain = FailingBrain()
        repo = FilterRepository(brain)
        dispatcher = CommandDispatcher(settings, jira_client, repo)

        await dispatcher.handle(msg("save filter project = X as f"), collect)

        assert [r.text for r in replies] == [
            "Sorry, I couldn't save filter f: could not write saved filters: supabase down"
        ]
        assert repo.all() == ()
        assert await brain.get(FILTERS_KEY) is None

    @pytest.mark.asyncio
    async def test_delete_failure_replies_and_keeps_filter(self, settings, jira_client, collect, replies):
        brain = FailingBrain({FILTERS_KEY: [{"name": "f", "query": "project = X"}]})
        repo = FilterRepository(brain)
        dispatcher = CommandDispatcher(settings, jira_client, repo)

        await dispatcher.handle(msg("delete filter f"), collect)

        assert replies[0].text.startswith("Sorry, I couldn't delete filter f")
        assert repo.get("f").query == "project = X"

    @pytest.mark.asyncio
    async def test_load_failure_replies(self, settings, jira_client, collect, replies):
        repo = FilterRepository(FailingBrain(fail_get=True))
        dispatcher = CommandDispatcher(settings, jira_client, repo)

        await dispatcher.handle(msg("show filters"), collect)

        assert replies[0].text.startswith("Sorry, I couldn't load the saved filters")
        assert not repo.is_loaded
