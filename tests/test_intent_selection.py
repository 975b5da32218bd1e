"""Tests for the numbered intent menu and numeric selection."""

import pytest

from escalation_bot.core.bot import Bot, RecordingMessenger
from escalation_bot.core.errors import ProtocolDefect
from escalation_bot.core.state import Accepted, ConversationState, Rejected
from escalation_bot.skills.intent_selection import (
    SKIP_INTENT_LIST,
    build_selection_menu,
    parse_intent_selection,
    render_menu,
)

CATALOG = [{"id": "a1", "name": "Billing"}, {"id": "b2", "name": "Shipping"}, {"id": "c3", "name": "Returns"}]


@pytest.fixture
def cached():
    state = ConversationState(conversation_id="sel")
    state.scratch["intent_list"] = list(CATALOG)
    return state


def test_render_menu():
    assert render_menu(CATALOG[:2]) == (
        "Please tell me the number of the question to add this sentence.\n"
        "1 Billing\n2 Shipping\n3 New question"
    )


def test_render_empty_menu_offers_only_new_question():
    assert render_menu([]).splitlines()[1:] == ["1 New question"]


class TestParseIntentSelection:
    async def test_last_entry(self, cached):
        assert await parse_intent_selection("3", None, cached) == Accepted("c3")

    async def test_first_entry_with_whitespace(self, cached):
        assert await parse_intent_selection(" 1 ", None, cached) == Accepted("a1")

    async def test_one_past_the_end_means_new(self, cached):
        outcome = await parse_intent_selection("4", None, cached)

        assert isinstance(outcome, Accepted)
        assert outcome.value is None

    @pytest.mark.parametrize("value", ["2.0", "+2", "2.", "02"])
    async def test_integral_forms_are_numbers(self, cached, value):
        assert await parse_intent_selection(value, None, cached) == Accepted("b2")

    @pytest.mark.parametrize("value", ["0", "5", "-1", "2.5", "1e0", "", "abc", "²", "2_0"])
    async def test_rejected(self, cached, value):
        assert isinstance(await parse_intent_selection(value, None, cached), Rejected)

    async def test_rejected_without_cached_list(self):
        state = ConversationState(conversation_id="empty")

        assert isinstance(await parse_intent_selection("1", None, state), Rejected)


class TestBuildSelectionMenu:
    async def test_filters_caches_and_collects(self, skill, catalog):
        state = ConversationState(conversation_id="menu")
        bot = Bot(skill, state, RecordingMessenger())

        intent_list = await build_selection_menu(catalog, SKIP_INTENT_LIST, bot, state)

        assert intent_list == [
            {"id": "id-billing", "name": "Billing"},
            {"id": "id-shipping", "name": "Shipping"},
        ]
        assert state.scratch["intent_list"] == intent_list
        assert state.pending == ["intent_id"]
        assert state.message_overrides["intent_id"]["text"].endswith("3 New question")

    async def test_custom_exclusions(self, skill, catalog):
        state = ConversationState(conversation_id="menu")
        bot = Bot(skill, state, RecordingMessenger())

        intent_list = await build_selection_menu(catalog, ["Billing"], bot, state)

        assert [i["name"] for i in intent_list] == [
            "Default Welcome Intent", "escalation", "Shipping", "robot-response"
        ]

    async def test_requires_declared_parameter(self, skill, catalog):
        state = ConversationState(conversation_id="menu")
        bot = Bot(skill, state, RecordingMessenger())

        with pytest.raises(ProtocolDefect):
            await build_selection_menu(catalog, SKIP_INTENT_LIST, bot, state, parameter="unknown")
