"""Numbered intent menu and the parser that reads the operator's choice back.

The filtered list is cached in ``context.scratch["intent_list"]`` so that the
number typed on the next turn resolves against the same ordering the menu
showed.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Sequence

from ..core.bot import Bot
from ..core.state import Accepted, ConversationState, ParseOutcome, Rejected
from ..nlu.dialogflow import IntentCatalog


logger = logging.getLogger(__name__)

# "2", "+2", "2.0"
INTEGRAL_NUMBER = re.compile(r"\+?\d+(?:\.0*)?", re.ASCII)

SKIP_INTENT_LIST = [
    "Default Fallback Intent",
    "Default Welcome Intent",
    "escalation",
    "human-response",
    "robot-response",
]

INTENT_LIST_KEY = "intent_list"
MENU_HEADER = "Please tell me the number of the question to add this sentence."
NEW_QUESTION_LABEL = "New question"


def render_menu(intent_list: List[Dict[str, Any]]) -> str:
    lines = [MENU_HEADER]
    for offset, intent in enumerate(intent_list, start=1):
        lines.append(f"{offset} {intent['name']}")
    lines.append(f"{len(intent_list) + 1} {NEW_QUESTION_LABEL}")
    return "\n".join(lines)


async def build_selection_menu(
    catalog: IntentCatalog,
    exclusions: Sequence[str],
    bot: Bot,
    context: ConversationState,
    parameter: str = "intent_id",
) -> List[Dict[str, Any]]:
    all_intents = await catalog.list_intents()
    intent_list = [i.to_dict() for i in all_intents if i.name not in exclusions]
    logger.debug(
        "Removed %d reserved intent(s), %d left.",
        len(all_intents) - len(intent_list),
        len(intent_list),
    )

    context.scratch[INTENT_LIST_KEY] = intent_list
    bot.change_message_to_confirm(parameter, {"type": "text", "text": render_menu(intent_list)})
    bot.collect(parameter)
    return intent_list


async def parse_intent_selection(value: Any, bot: Bot, context: ConversationState) -> ParseOutcome:
    """``1..N`` picks an intent id, ``N+1`` means a new intent (``None``)."""
    intent_list = context.scratch.get(INTENT_LIST_KEY)
    if intent_list is None:
        return Rejected("no intent list to select from")

    raw = str(value).strip()
    if not INTEGRAL_NUMBER.fullmatch(raw):
        return Rejected(f"{value!r} is not a number")

    number = int(raw.split(".")[0])
    if 1 <= number <= len(intent_list):
        return Accepted(intent_list[number - 1]["id"])
    if number == len(intent_list) + 1:
        return Accepted(None)
    return Rejected(f"{number} is out of range 1..{len(intent_list) + 1}")
