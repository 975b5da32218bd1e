from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

from .errors import ProtocolDefect
from .state import ConversationState

if TYPE_CHECKING:
    from ..skills.base import BaseSkill


logger = logging.getLogger(__name__)

Message = Dict[str, Any]


class Messenger:
    """Transport used by the bot. Hosts plug their channel in here."""

    async def reply(self, context: ConversationState, messages: List[Message]) -> None:
        raise NotImplementedError

    async def send(self, user_id: str, messages: List[Message], language: Optional[str] = None) -> None:
        raise NotImplementedError


class RecordingMessenger(Messenger):
    """Keeps every outgoing message in memory."""

    def __init__(self) -> None:
        self.replies: List[Dict[str, Any]] = []
        self.sent: List[Dict[str, Any]] = []

    async def reply(self, context: ConversationState, messages: List[Message]) -> None:
        for m in messages:
            self.replies.append({"conversation_id": context.conversation_id, "message": m})

    async def send(self, user_id: str, messages: List[Message], language: Optional[str] = None) -> None:
        for m in messages:
            self.sent.append({"user_id": user_id, "language": language, "message": m})


class ConsoleMessenger(Messenger):
    async def reply(self, context: ConversationState, messages: List[Message]) -> None:
        for m in messages:
            print(f"Bot: {message_text(m)}")

    async def send(self, user_id: str, messages: List[Message], language: Optional[str] = None) -> None:
        for m in messages:
            print(f"[to {user_id} ({language or '-'})] {message_text(m)}")


def message_text(message: Message) -> str:
    """Plain-text rendering used for logs and the console."""
    if message.get("type") == "text":
        return str(message.get("text", ""))
    template = message.get("template") or {}
    text = str(template.get("text") or message.get("altText") or "")
    labels = [a.get("label") for a in template.get("actions", []) if a.get("label")]
    if labels:
        text += " [" + " / ".join(labels) + "]"
    return text


class Bot:
    """Per-turn handle given to parsers, reactions and finish routines."""

    def __init__(self, skill: "BaseSkill", context: ConversationState, messenger: Messenger):
        self.skill = skill
        self.context = context
        self.messenger = messenger
        self._queue: List[Message] = []
        self.replied: List[Message] = []

    # ---------- messages ----------

    def queue(self, message: Union[Message, List[Message]]) -> None:
        if isinstance(message, list):
            self._queue.extend(message)
        else:
            self._queue.append(message)

    async def reply(self, message: Optional[Union[Message, List[Message]]] = None) -> None:
        """Send queued messages plus ``message`` to the current sender now."""
        if message is not None:
            self.queue(message)
        if not self._queue:
            return
        messages, self._queue = self._queue, []
        await self.messenger.reply(self.context, messages)
        self.replied.extend(messages)
        for m in messages:
            self.context.append_history("assistant", message_text(m))

    async def send(
        self,
        user_id: str,
        message: Union[Message, List[Message]],
        language: Optional[str] = None,
    ) -> None:
        messages = message if isinstance(message, list) else [message]
        logger.debug("Sending %d message(s) to user %s", len(messages), user_id)
        await self.messenger.send(user_id, messages, language)

    def discard_queue(self) -> None:
        self._queue = []

    # ---------- parameters ----------

    def collect(self, name: str) -> None:
        if not self.skill.has_parameter(name):
            raise ProtocolDefect(
                f"skill {self.skill.name!r} does not declare parameter {name!r}"
            )
        if name in self.context.confirmed:
            raise ProtocolDefect(f"parameter {name!r} is already confirmed")
        if self.context.enqueue(name):
            logger.debug("Collecting %s, pending: %s", name, self.context.pending)

    def change_message_to_confirm(self, name: str, message: Message) -> None:
        if not self.skill.has_parameter(name):
            raise ProtocolDefect(
                f"skill {self.skill.name!r} does not declare parameter {name!r}"
            )
        self.context.message_overrides[name] = message

    def message_to_confirm(self, name: str) -> Optional[Message]:
        if name in self.context.message_overrides:
            return self.context.message_overrides[name]
        return self.skill.get_parameter(name).message_to_confirm
