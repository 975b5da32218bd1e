from __future__ import annotations

import argparse
import asyncio
import logging
import uuid

from dotenv import load_dotenv
from openai import AsyncOpenAI

from .config import BotConfig
from .core.bot import ConsoleMessenger
from .core.orchestrator import EscalationHost
from .nlu.classifier import LabelClassifier
from .nlu.dialogflow import IntentCatalog
from .persistence.file_store import ContextStore
from .skills.human_response import HumanResponseSkill


def build_host(config: BotConfig) -> tuple[EscalationHost, IntentCatalog]:
    classifier = LabelClassifier(
        AsyncOpenAI(),
        model=config.nlu_model,
        threshold=config.nlu_confidence_threshold,
    )
    catalog = IntentCatalog.from_config(config)
    skill = HumanResponseSkill(config, classifier, catalog)
    host = EscalationHost(
        config,
        skills={skill.name: skill},
        messenger=ConsoleMessenger(),
        store=ContextStore(config.log_dir, config.sessions_dir),
    )
    return host, catalog


async def loop_text_only(host: EscalationHost, args: argparse.Namespace) -> None:
    conversation_id = args.conversation or f"operator-{uuid.uuid4().hex[:8]}"
    print(f"Escalated question from {args.user_id}: {args.question}")
    print("Type 'q' to quit.")

    result = await host.start(
        conversation_id,
        "human-response",
        sender_id="operator",
        language=args.language,
        preset={
            "user": {"id": args.user_id, "language": args.user_language},
            "question": args.question,
        },
    )
    while not result.finished:
        txt = (await asyncio.to_thread(input, "You: ")).strip()
        if txt.lower() == "q":
            break
        if not txt:
            continue
        result = await host.handle(conversation_id, txt)


def main() -> None:
    load_dotenv()

    parser = argparse.ArgumentParser(description="Answer an escalated question as operator.")
    parser.add_argument("--question", required=True, help="Question the bot could not answer.")
    parser.add_argument("--user-id", required=True, help="User who asked the question.")
    parser.add_argument("--user-language", default="en")
    parser.add_argument("--language", default="en", help="Operator language.")
    parser.add_argument("--conversation", default=None, help="Conversation id to use.")
    parser.add_argument(
        "--mode",
        choices=["route", "create_only"],
        default=None,
        help="How a learned question is added to the NLU agent.",
    )
    parser.add_argument("--debug", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = BotConfig(learning_mode=args.mode) if args.mode else BotConfig()

    async def _run() -> None:
        host, catalog = build_host(config)
        try:
            await loop_text_only(host, args)
        finally:
            await catalog.close()

    asyncio.run(_run())


if __name__ == "__main__":
    main()
