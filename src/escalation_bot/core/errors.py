from __future__ import annotations

from typing import Any, Dict, Optional


class EscalationBotError(Exception):
    """Base class for every error raised by the bot."""


class ValidationRejected(EscalationBotError):
    """Input did not match any accepted label or shape.

    Not fatal. Parsers may raise it instead of returning ``Rejected``; the
    engine converts it into a rejection for the current parameter.
    """

    def __init__(self, reason: str = "invalid value", value: Any = None):
        super().__init__(reason)
        self.reason = reason
        self.value = value


class BackendUnavailable(EscalationBotError):
    """An NLU, catalog or delivery call failed."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(f"{service}: {message}")
        self.service = service
        self.details = details or {}


class ProtocolDefect(EscalationBotError):
    """An engine invariant was violated. This is a programming error."""
