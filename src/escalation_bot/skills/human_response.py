from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping

from ..config import BotConfig
from ..core.bot import Bot
from ..core.state import Accepted, ConversationState, ParseOutcome, Rejected
from ..nlu.classifier import LabelClassifier
from ..nlu.dialogflow import IntentCatalog
from ..nlu.parser import by_nlu_with_list
from .base import BaseSkill, ParameterSpec
from .intent_selection import SKIP_INTENT_LIST, build_selection_menu, parse_intent_selection


logger = logging.getLogger(__name__)

ROBOT_RESPONSE_ACTION = "robot-response"

YES_NO = ["Yes", "No"]
NEW_OR_EXISTING = ["New", "Existing", "No idea"]

MSG_ADDED_AS_NEW = "OK. I will add this question as new one."
MSG_ADDED_AS_SENTENCE = "OK. I will add this question as an example sentence."
MSG_REPLYING = "Sure. I will reply to the user with your answer."


def _buttons(kind: str, text: str, labels) -> dict:
    return {
        "type": "template",
        "altText": text,
        "template": {
            "type": kind,
            "text": text,
            "actions": [{"type": "message", "label": label, "text": label} for label in labels],
        },
    }


class HumanResponseSkill(BaseSkill):
    """
    An operator answers a question the bot could not handle:
    - collects the answer, then asks whether the bot should learn the question
    - optionally creates a new intent or adds the question to an existing one
    - finally forwards the answer to the user who asked
    """

    name = "human-response"

    def __init__(self, config: BotConfig, classifier: LabelClassifier, catalog: IntentCatalog):
        super().__init__(config)
        self.classifier = classifier
        self.catalog = catalog
        self.learning_mode = config.learning_mode

        self.required_parameter = {
            "user": ParameterSpec("user", parser=self._parse_user),
            "question": ParameterSpec("question"),
            "answer": ParameterSpec(
                "answer",
                message_to_confirm={"type": "text", "text": "OK. Answer please."},
            ),
            "enable_learning": ParameterSpec(
                "enable_learning",
                message_to_confirm=_buttons(
                    "confirm", "Do you want chatbot to learn this question?", YES_NO
                ),
                parser=self._parse_enable_learning,
                reaction=self._react_enable_learning,
            ),
        }

        if self.learning_mode == "route":
            self.optional_parameter = {
                "is_new_intent": ParameterSpec(
                    "is_new_intent",
                    message_to_confirm=_buttons(
                        "buttons", "Is this a new question or existing one?", NEW_OR_EXISTING
                    ),
                    parser=self._parse_is_new_intent,
                    reaction=self._react_is_new_intent,
                ),
                # Prompt is rendered at runtime from the intent catalog.
                "intent_id": ParameterSpec(
                    "intent_id",
                    parser=parse_intent_selection,
                    reaction=self._react_intent_id,
                ),
            }

    # ---------- user ----------

    async def _parse_user(self, value, bot: Bot, context: ConversationState) -> ParseOutcome:
        if isinstance(value, Mapping) and value.get("id"):
            return Accepted(dict(value))
        return Rejected("user must be a mapping with an id")

    # ---------- enable_learning ----------

    async def _parse_enable_learning(self, value, bot: Bot, context: ConversationState) -> ParseOutcome:
        return await by_nlu_with_list(
            self.classifier, context.sender_language, "yes_no", value, YES_NO
        )

    async def _react_enable_learning(self, outcome: ParseOutcome, bot: Bot, context: ConversationState) -> None:
        if not isinstance(outcome, Accepted) or outcome.value == "No":
            return

        if self.learning_mode == "create_only":
            await self._add_new_intent(bot, context)
            return

        # Ask whether to create a new intent or add an example to an existing one.
        bot.collect("is_new_intent")

    # ---------- is_new_intent ----------

    async def _parse_is_new_intent(self, value, bot: Bot, context: ConversationState) -> ParseOutcome:
        return await by_nlu_with_list(
            self.classifier, context.sender_language, "is_new_intent", value, NEW_OR_EXISTING
        )

    async def _react_is_new_intent(self, outcome: ParseOutcome, bot: Bot, context: ConversationState) -> None:
        if not isinstance(outcome, Accepted):
            return

        if outcome.value == "New":
            await self._add_new_intent(bot, context)
            return

        await build_selection_menu(self.catalog, SKIP_INTENT_LIST, bot, context)

    # ---------- intent_id ----------

    async def _react_intent_id(self, outcome: ParseOutcome, bot: Bot, context: ConversationState) -> None:
        if not isinstance(outcome, Accepted):
            return

        if outcome.value is None:
            await self._add_new_intent(bot, context)
            return

        await self.catalog.add_sentence(outcome.value, context.confirmed["question"])
        bot.queue({"type": "text", "text": MSG_ADDED_AS_SENTENCE})

    # ---------- helpers ----------

    async def _add_new_intent(self, bot: Bot, context: ConversationState) -> None:
        question = context.confirmed["question"]
        await self.catalog.add_intent(
            name=question,
            action=ROBOT_RESPONSE_ACTION,
            training_phrase=question,
            response_text=context.confirmed["answer"],
        )
        bot.queue({"type": "text", "text": MSG_ADDED_AS_NEW})

    async def finish(self, bot: Bot, context: ConversationState) -> None:
        user = context.confirmed["user"]
        results = await asyncio.gather(
            bot.reply({"type": "text", "text": MSG_REPLYING}),
            bot.send(
                user["id"],
                {"type": "text", "text": context.confirmed["answer"]},
                user.get("language"),
            ),
            return_exceptions=True,
        )
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            logger.error("Finishing %s failed: %s", context.conversation_id, errors)
            raise errors[0]
