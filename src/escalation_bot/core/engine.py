from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

from .bot import Bot, Messenger
from .errors import ProtocolDefect, ValidationRejected
from .state import Accepted, ConversationState, ParseOutcome, Rejected, TurnResult

if TYPE_CHECKING:
    from ..skills.base import BaseSkill


logger = logging.getLogger(__name__)


class SlotFillingEngine:
    """
    Drives one skill over one conversation, one turn per call:
    - parses the answer for the parameter currently awaited
    - runs the parameter's reaction (which may collect more parameters)
    - prompts the next pending parameter, or runs ``finish`` when none is left
    """

    def __init__(self, messenger: Messenger):
        self.messenger = messenger

    async def advance(
        self,
        skill: "BaseSkill",
        incoming_input: Optional[Any],
        context: ConversationState,
    ) -> TurnResult:
        if context.finished:
            raise ProtocolDefect(
                f"conversation {context.conversation_id} already finished skill {context.skill!r}"
            )
        self._bind(skill, context)

        bot = Bot(skill, context, self.messenger)
        try:
            if incoming_input is not None:
                if context.awaiting is None:
                    logger.debug("Nothing asked yet, input not applied to a parameter.")
                else:
                    await self._apply(skill, context.awaiting, incoming_input, bot, context)
            return await self._next(skill, bot, context)
        except Exception:
            bot.discard_queue()
            raise

    # ---------- steps ----------

    def _bind(self, skill: "BaseSkill", context: ConversationState) -> None:
        if context.skill is None:
            context.skill = skill.name
            for name in skill.required_parameter:
                if name not in context.confirmed:
                    context.enqueue(name)
            logger.debug("Bound skill %s, pending: %s", skill.name, context.pending)
        elif context.skill != skill.name:
            raise ProtocolDefect(
                f"conversation {context.conversation_id} is bound to {context.skill!r}, not {skill.name!r}"
            )

    async def _apply(
        self,
        skill: "BaseSkill",
        name: str,
        value: Any,
        bot: Bot,
        context: ConversationState,
    ) -> None:
        param = skill.get_parameter(name)
        try:
            outcome: ParseOutcome = await param.parser(value, bot, context)
        except ValidationRejected as exc:
            outcome = Rejected(exc.reason)

        pending = list(context.pending)
        overrides = dict(context.message_overrides)

        if isinstance(outcome, Accepted):
            context.confirm(name, outcome.value)
            context.awaiting = None
            logger.debug("Confirmed %s=%r", name, outcome.value)
        else:
            logger.info("Value for %s rejected: %s", name, outcome.reason)

        try:
            await param.reaction(outcome, bot, context)
        except Exception:
            # the parameter is asked again so the next answer reruns its reaction
            context.confirmed.pop(name, None)
            context.pending = pending
            context.message_overrides = overrides
            context.awaiting = name
            logger.warning("Reaction for %s failed, %s is pending again", name, name)
            raise

    async def _next(self, skill: "BaseSkill", bot: Bot, context: ConversationState) -> TurnResult:
        name = context.head
        if name is None:
            return await self._finish(skill, bot, context)

        if context.awaiting != name:
            message = bot.message_to_confirm(name)
            if message:
                bot.queue(message)
            context.awaiting = name

        await bot.reply()
        return TurnResult(
            status="awaiting",
            awaiting=name,
            confirmed=dict(context.confirmed),
            messages=list(bot.replied),
        )

    async def _finish(self, skill: "BaseSkill", bot: Bot, context: ConversationState) -> TurnResult:
        missing = [n for n in skill.required_parameter if n not in context.confirmed]
        if missing:
            raise ProtocolDefect(f"queue is empty but {missing} are not confirmed")

        context.awaiting = None
        await skill.finish(bot, context)
        await bot.reply()
        context.finished = True

        confirmed = dict(context.confirmed)
        if skill.clear_context_on_finish:
            logger.debug("Clearing context of %s", context.conversation_id)
            context.reset()

        return TurnResult(status="finished", confirmed=confirmed, messages=list(bot.replied))
