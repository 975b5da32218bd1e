from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional, Union

from ..config import BotConfig
from ..persistence.file_store import ContextStore, MemoryContextStore
from ..skills.base import BaseSkill
from .bot import Bot, Messenger, message_text
from .engine import SlotFillingEngine
from .errors import ProtocolDefect, ValidationRejected
from .state import ConversationState, Rejected, TurnResult


logger = logging.getLogger(__name__)


class EscalationHost:
    """
    Host around the slot-filling engine:
    - keeps one context per conversation id in the store
    - serializes events of the same conversation with a lock
    - logs every turn into the transcript
    """

    def __init__(
        self,
        config: BotConfig,
        skills: Dict[str, BaseSkill],
        messenger: Messenger,
        store: Union[ContextStore, MemoryContextStore],
    ):
        self.config = config
        self.skills = skills
        self.messenger = messenger
        self.store = store
        self.engine = SlotFillingEngine(messenger)
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @asynccontextmanager
    async def _serialized(self, conversation_id: str):
        """Hold the conversation lock; it is dropped once no caller holds or waits on it."""
        lock = self._locks.setdefault(conversation_id, asyncio.Lock())
        self._lock_users[conversation_id] = self._lock_users.get(conversation_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[conversation_id] -= 1
            if not self._lock_users[conversation_id]:
                del self._lock_users[conversation_id]
                del self._locks[conversation_id]

    def _skill(self, name: Optional[str]) -> BaseSkill:
        skill = self.skills.get(name or "")
        if skill is None:
            raise ProtocolDefect(f"unknown skill {name!r}")
        return skill

    # ---------- core handling ----------

    async def start(
        self,
        conversation_id: str,
        skill_name: str,
        sender_id: Optional[str] = None,
        language: Optional[str] = None,
        preset: Optional[Dict[str, Any]] = None,
    ) -> TurnResult:
        """Begin ``skill_name``, with values supplied by a previous step in ``preset``."""
        async with self._serialized(conversation_id):
            skill = self._skill(skill_name)
            state = self.store.load(conversation_id)
            if state is None:
                state = ConversationState(conversation_id=conversation_id)
            elif state.skill is not None and not state.finished:
                raise ProtocolDefect(
                    f"conversation {conversation_id} is still running {state.skill!r}"
                )
            else:
                state.unbind()

            state.sender_id = sender_id or state.sender_id
            state.sender_language = language or state.sender_language

            values = await self._parse_preset(skill, preset or {}, state)
            for name, value in values.items():
                # a chained run replaces what the previous run confirmed under the same name
                state.confirmed.pop(name, None)
                state.confirm(name, value)

            # nothing would ever prompt for these
            missing = [
                name
                for name, param in skill.required_parameter.items()
                if param.message_to_confirm is None and name not in state.confirmed
            ]
            if missing:
                raise ProtocolDefect(f"{skill_name} needs {missing} in the preset")

            self.store.log_turn(conversation_id, "system", f"start {skill_name}")
            return await self._run(skill, None, state)

    async def handle(self, conversation_id: str, text: str) -> TurnResult:
        async with self._serialized(conversation_id):
            state = self.store.load(conversation_id)
            if state is None or state.skill is None:
                raise ProtocolDefect(f"no running skill for conversation {conversation_id}")
            skill = self._skill(state.skill)

            state.append_history("user", text)
            self.store.log_turn(conversation_id, "user", text, parameter=state.awaiting)
            return await self._run(skill, text, state)

    async def _run(self, skill: BaseSkill, text: Optional[str], state: ConversationState) -> TurnResult:
        try:
            result = await self.engine.advance(skill, text, state)
        except Exception:
            # keep what was confirmed so the turn can be retried
            logger.exception("Turn failed for conversation %s", state.conversation_id)
            self._clamp_history(state)
            self.store.save(state)
            raise

        for message in result.messages:
            self.store.log_turn(state.conversation_id, "assistant", message_text(message))

        if result.finished and skill.clear_context_on_finish:
            self.store.delete(state.conversation_id)
        else:
            self._clamp_history(state)
            self.store.save(state)
        return result

    # ---------- helpers ----------

    async def _parse_preset(
        self, skill: BaseSkill, preset: Dict[str, Any], state: ConversationState
    ) -> Dict[str, Any]:
        """Run each preset value through its parameter's parser."""
        bot = Bot(skill, state, self.messenger)
        values: Dict[str, Any] = {}
        for name, value in preset.items():
            param = skill.get_parameter(name)
            try:
                outcome = await param.parser(value, bot, state)
            except ValidationRejected as exc:
                outcome = Rejected(exc.reason)
            if isinstance(outcome, Rejected):
                raise ProtocolDefect(f"preset value for {name} rejected: {outcome.reason}")
            values[name] = outcome.value
        return values

    def _clamp_history(self, state: ConversationState) -> None:
        """Keep only the last N turns."""
        limit = self.config.history_limit
        if len(state.history) > limit:
            state.history = state.history[-limit:]
