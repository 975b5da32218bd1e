"""Tests for the host around the engine."""

import asyncio

import pytest

from escalation_bot.config import BotConfig
from escalation_bot.core.errors import BackendUnavailable, ProtocolDefect
from escalation_bot.core.orchestrator import EscalationHost
from escalation_bot.skills.human_response import HumanResponseSkill

PRESET = {"user": {"id": "user-42", "language": "ja"}, "question": "Where is my parcel?"}


async def test_full_exchange(host, store, messenger, catalog):
    first = await host.start("c1", "human-response", sender_id="admin", language="en", preset=PRESET)
    assert first.awaiting == "answer"

    await host.handle("c1", "Tomorrow.")
    await host.handle("c1", "Yes")
    await host.handle("c1", "Existing")
    result = await host.handle("c1", "1")

    assert result.finished
    catalog.add_sentence.assert_awaited_once_with("id-billing", "Where is my parcel?")
    assert messenger.sent[0]["message"]["text"] == "Tomorrow."
    saved = store.load("c1")
    assert saved.finished
    assert saved.confirmed["intent_id"] == "id-billing"
    assert "[c1] user(answer): Tomorrow." in store.transcript


async def test_state_is_deleted_after_finish_in_production(classifier, catalog, messenger, store):
    config = BotConfig(environment="production")
    skill = HumanResponseSkill(config, classifier, catalog)
    host = EscalationHost(config, {skill.name: skill}, messenger, store)

    await host.start("c2", "human-response", preset=PRESET)
    await host.handle("c2", "Tomorrow.")
    result = await host.handle("c2", "No")

    assert result.finished
    assert store.load("c2") is None
    assert "c2" not in host._locks


async def test_same_conversation_events_run_in_order(host, store):
    await host.start("c13", "human-response", preset=PRESET)

    await asyncio.gather(host.handle("c13", "Tomorrow."), host.handle("c13", "Yes"))

    saved = store.load("c13")
    assert saved.confirmed["answer"] == "Tomorrow."
    assert saved.confirmed["enable_learning"] == "Yes"
    assert saved.awaiting == "is_new_intent"
    assert host._locks == {}


async def test_handle_without_start_is_a_defect(host):
    with pytest.raises(ProtocolDefect):
        await host.handle("nobody", "hello")


async def test_start_twice_is_a_defect(host):
    await host.start("c3", "human-response", preset=PRESET)

    with pytest.raises(ProtocolDefect):
        await host.start("c3", "human-response", preset=PRESET)


async def test_unknown_skill_and_preset(host):
    with pytest.raises(ProtocolDefect):
        await host.start("c4", "robot-response")
    with pytest.raises(ProtocolDefect):
        await host.start("c5", "human-response", preset={"colour": "blue"})


async def test_finished_context_chains_into_new_run(host, store):
    await host.start("c6", "human-response", preset=PRESET)
    await host.handle("c6", "Tomorrow.")
    await host.handle("c6", "No")

    again = await host.start("c6", "human-response")

    # everything required is still confirmed, so it finishes immediately
    assert again.finished


async def test_chained_run_replaces_preset_values(host, store, messenger):
    await host.start("c9", "human-response", preset=PRESET)
    await host.handle("c9", "Tomorrow.")
    await host.handle("c9", "No")

    again = await host.start(
        "c9",
        "human-response",
        preset={"user": {"id": "user-7"}, "question": "Do you ship abroad?"},
    )

    assert again.finished
    assert again.confirmed["question"] == "Do you ship abroad?"
    assert again.confirmed["answer"] == "Tomorrow."
    assert messenger.sent[-1]["user_id"] == "user-7"


async def test_start_without_user_or_question_is_a_defect(host, store):
    with pytest.raises(ProtocolDefect):
        await host.start("c10", "human-response")
    with pytest.raises(ProtocolDefect):
        await host.start("c11", "human-response", preset={"question": "Where is my parcel?"})

    assert store.load("c10") is None
    assert store.load("c11") is None


@pytest.mark.parametrize("user", ["user-42", {"language": "ja"}, {"id": ""}, None])
async def test_malformed_user_preset_is_a_defect(host, store, user):
    with pytest.raises(ProtocolDefect):
        await host.start("c12", "human-response", preset={"user": user, "question": "Why?"})

    assert store.load("c12") is None


async def test_failed_reaction_asks_again_and_retries(host, store, catalog, messenger):
    catalog.add_intent.side_effect = [BackendUnavailable("dialogflow", "503"), None]
    await host.start("c7", "human-response", preset=PRESET)
    await host.handle("c7", "Tomorrow.")
    await host.handle("c7", "Yes")

    with pytest.raises(BackendUnavailable):
        await host.handle("c7", "New")

    saved = store.load("c7")
    assert saved.confirmed["answer"] == "Tomorrow."
    assert saved.confirmed["enable_learning"] == "Yes"
    assert "is_new_intent" not in saved.confirmed
    assert saved.awaiting == "is_new_intent"

    result = await host.handle("c7", "New")

    assert result.finished
    assert catalog.add_intent.await_count == 2
    assert messenger.sent[-1]["message"]["text"] == "Tomorrow."


async def test_conversations_progress_independently(host, store):
    await asyncio.gather(
        host.start("a", "human-response", preset=PRESET),
        host.start("b", "human-response", preset=PRESET),
    )
    await asyncio.gather(host.handle("a", "Answer A"), host.handle("b", "Answer B"))

    assert store.load("a").confirmed["answer"] == "Answer A"
    assert store.load("b").confirmed["answer"] == "Answer B"


async def test_history_is_clamped(classifier, catalog, messenger, store):
    config = BotConfig(environment="test")
    config.history_limit = 2
    skill = HumanResponseSkill(config, classifier, catalog)
    host = EscalationHost(config, {skill.name: skill}, messenger, store)

    await host.start("c8", "human-response", preset=PRESET)
    await host.handle("c8", "Tomorrow.")
    await host.handle("c8", "what?")

    assert len(store.load("c8").history) == 2
