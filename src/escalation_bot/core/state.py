from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .errors import ProtocolDefect


@dataclass(frozen=True)
class Accepted:
    value: Any

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Rejected:
    reason: str = "invalid value"

    @property
    def ok(self) -> bool:
        return False


ParseOutcome = Union[Accepted, Rejected]


@dataclass
class TurnResult:
    status: str  # "awaiting" | "finished"
    awaiting: Optional[str] = None
    confirmed: Dict[str, Any] = field(default_factory=dict)
    messages: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def finished(self) -> bool:
        return self.status == "finished"


@dataclass
class ConversationState:
    """Per-conversation context. Owned by the host, mutated by the engine."""

    conversation_id: str
    sender_id: Optional[str] = None
    sender_language: Optional[str] = None

    skill: Optional[str] = None
    confirmed: Dict[str, Any] = field(default_factory=dict)
    pending: List[str] = field(default_factory=list)
    awaiting: Optional[str] = None
    message_overrides: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    scratch: Dict[str, Any] = field(default_factory=dict)
    finished: bool = False

    history: List[Dict[str, str]] = field(default_factory=list)

    # ---------- queue ----------

    def enqueue(self, name: str) -> bool:
        """Append to the pending queue; returns False if already queued."""
        if name in self.pending:
            return False
        self.pending.append(name)
        return True

    @property
    def head(self) -> Optional[str]:
        return self.pending[0] if self.pending else None

    def confirm(self, name: str, value: Any) -> None:
        if name in self.confirmed:
            raise ProtocolDefect(f"parameter {name!r} is already confirmed")
        self.confirmed[name] = value
        if name in self.pending:
            self.pending.remove(name)

    # ---------- lifecycle ----------

    def unbind(self) -> None:
        """Release a finished skill but keep confirmed values for the next one."""
        self.skill = None
        self.pending = []
        self.awaiting = None
        self.message_overrides = {}
        self.finished = False

    def reset(self) -> None:
        self.skill = None
        self.confirmed = {}
        self.pending = []
        self.awaiting = None
        self.message_overrides = {}
        self.scratch = {}
        self.finished = False

    def append_history(self, role: str, text: str) -> None:
        self.history.append({"role": role, "text": text})

    # ---------- persistence ----------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conversation_id": self.conversation_id,
            "sender_id": self.sender_id,
            "sender_language": self.sender_language,
            "skill": self.skill,
            "confirmed": self.confirmed,
            "pending": list(self.pending),
            "awaiting": self.awaiting,
            "message_overrides": self.message_overrides,
            "scratch": self.scratch,
            "finished": self.finished,
            "history": self.history,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationState":
        return cls(
            conversation_id=str(data["conversation_id"]),
            sender_id=data.get("sender_id"),
            sender_language=data.get("sender_language"),
            skill=data.get("skill"),
            confirmed=dict(data.get("confirmed") or {}),
            pending=list(data.get("pending") or []),
            awaiting=data.get("awaiting"),
            message_overrides=dict(data.get("message_overrides") or {}),
            scratch=dict(data.get("scratch") or {}),
            finished=bool(data.get("finished", False)),
            history=list(data.get("history") or []),
        )
