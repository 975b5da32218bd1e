from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from ..config import BotConfig
from ..core.bot import Bot
from ..core.errors import ProtocolDefect
from ..core.state import Accepted, ConversationState, ParseOutcome


Parser = Callable[[Any, Bot, ConversationState], Awaitable[ParseOutcome]]
Reaction = Callable[[ParseOutcome, Bot, ConversationState], Awaitable[None]]


async def accept_as_is(value: Any, bot: Bot, context: ConversationState) -> ParseOutcome:
    return Accepted(value)


async def no_reaction(outcome: ParseOutcome, bot: Bot, context: ConversationState) -> None:
    return None


@dataclass
class ParameterSpec:
    name: str
    message_to_confirm: Optional[Dict[str, Any]] = None
    parser: Parser = accept_as_is
    reaction: Reaction = no_reaction


class BaseSkill:
    name: str = "base"

    def __init__(self, config: BotConfig):
        self.config = config
        self.required_parameter: Dict[str, ParameterSpec] = {}
        self.optional_parameter: Dict[str, ParameterSpec] = {}
        self.clear_context_on_finish = config.clear_context_on_finish

    def has_parameter(self, name: str) -> bool:
        return name in self.required_parameter or name in self.optional_parameter

    def get_parameter(self, name: str) -> ParameterSpec:
        if name in self.required_parameter:
            return self.required_parameter[name]
        if name in self.optional_parameter:
            return self.optional_parameter[name]
        raise ProtocolDefect(f"skill {self.name!r} does not declare parameter {name!r}")

    async def finish(self, bot: Bot, context: ConversationState) -> None:
        raise NotImplementedError
