from __future__ import annotations

import json
import logging
import re
import time
from pathlib import Path
from typing import Dict, List, Optional

from ..core.state import ConversationState


logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]")


class ContextStore:
    """One JSON snapshot per conversation, plus a shared text transcript."""

    def __init__(self, log_dir: Path, sessions_dir: Path):
        self.log_dir = log_dir
        self.sessions_dir = sessions_dir

        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.sessions_dir.mkdir(parents=True, exist_ok=True)

        self.log_file: Path = self.log_dir / "conversation_log.txt"

    def _snapshot_file(self, conversation_id: str) -> Path:
        return self.sessions_dir / f"{_UNSAFE.sub('_', conversation_id)}.json"

    # ---------- snapshots ----------

    def load(self, conversation_id: str) -> Optional[ConversationState]:
        path = self._snapshot_file(conversation_id)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("Ignoring corrupt snapshot %s", path)
            return None
        if not isinstance(data, dict):
            return None
        return ConversationState.from_dict(data)

    def save(self, state: ConversationState) -> None:
        self._snapshot_file(state.conversation_id).write_text(
            json.dumps(state.to_dict(), indent=2, ensure_ascii=False),
            encoding="utf-8",
        )

    def delete(self, conversation_id: str) -> None:
        path = self._snapshot_file(conversation_id)
        if path.exists():
            path.unlink()

    # ---------- transcript ----------

    def log_turn(self, conversation_id: str, role: str, text: str, parameter: str | None = None) -> None:
        """
        Append one line to conversation_log.txt:
        [conversation-id] role: text
        or, when the turn answered a parameter:
        [conversation-id] role(parameter): text
        """
        tag = f"{role}({parameter})" if parameter else role
        stamp = time.strftime("%Y-%m-%dT%H:%M:%S")
        line = f"{stamp} [{conversation_id}] {tag}: {text}\n"
        with self.log_file.open("a", encoding="utf-8") as h:
            h.write(line)


class MemoryContextStore:
    def __init__(self) -> None:
        self._states: Dict[str, dict] = {}
        self.transcript: List[str] = []

    def load(self, conversation_id: str) -> Optional[ConversationState]:
        data = self._states.get(conversation_id)
        return ConversationState.from_dict(data) if data else None

    def save(self, state: ConversationState) -> None:
        self._states[state.conversation_id] = json.loads(json.dumps(state.to_dict()))

    def delete(self, conversation_id: str) -> None:
        self._states.pop(conversation_id, None)

    def log_turn(self, conversation_id: str, role: str, text: str, parameter: str | None = None) -> None:
        tag = f"{role}({parameter})" if parameter else role
        self.transcript.append(f"[{conversation_id}] {tag}: {text}")
