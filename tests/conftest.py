"""Shared fixtures: fake NLU backends, in-memory transport and store."""

from typing import Dict, List, Optional
from unittest.mock import AsyncMock

import pytest

from escalation_bot.config import BotConfig
from escalation_bot.core.bot import RecordingMessenger
from escalation_bot.core.engine import SlotFillingEngine
from escalation_bot.core.orchestrator import EscalationHost
from escalation_bot.core.state import ConversationState
from escalation_bot.nlu.dialogflow import Intent
from escalation_bot.persistence.file_store import MemoryContextStore
from escalation_bot.skills.human_response import HumanResponseSkill


class FakeClassifier:
    """Maps known free-text replies to labels, everything else to None."""

    def __init__(self, answers: Optional[Dict[str, str]] = None):
        self.answers = answers or {}
        self.classify = AsyncMock(side_effect=self._classify)

    async def _classify(self, language, domain, text, labels):
        label = self.answers.get(text.lower())
        return label if label in labels else None


class FakeCatalog:
    def __init__(self, names: List[str]):
        self.intents = [Intent(id=f"id-{n.lower().replace(' ', '-')}", name=n) for n in names]
        self.list_intents = AsyncMock(side_effect=lambda: list(self.intents))
        self.add_intent = AsyncMock(return_value=Intent(id="id-created", name="created"))
        self.add_sentence = AsyncMock(return_value=None)


@pytest.fixture
def bot_config() -> BotConfig:
    return BotConfig(environment="test", learning_mode="route")


@pytest.fixture
def classifier() -> FakeClassifier:
    return FakeClassifier({"nah": "No", "sure thing": "Yes", "brand new": "New", "already have it": "Existing"})


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog(["Default Welcome Intent", "Billing", "escalation", "Shipping", "robot-response"])


@pytest.fixture
def messenger() -> RecordingMessenger:
    return RecordingMessenger()


@pytest.fixture
def engine(messenger) -> SlotFillingEngine:
    return SlotFillingEngine(messenger)


@pytest.fixture
def skill(bot_config, classifier, catalog) -> HumanResponseSkill:
    return HumanResponseSkill(bot_config, classifier, catalog)


@pytest.fixture
def context() -> ConversationState:
    state = ConversationState(conversation_id="conv-1", sender_id="admin", sender_language="en")
    state.confirmed["user"] = {"id": "user-42", "language": "ja"}
    state.confirmed["question"] = "Where is my parcel?"
    return state


@pytest.fixture
def store() -> MemoryContextStore:
    return MemoryContextStore()


@pytest.fixture
def host(bot_config, skill, messenger, store) -> EscalationHost:
    return EscalationHost(bot_config, {skill.name: skill}, messenger, store)
