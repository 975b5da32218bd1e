from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from openai import AsyncOpenAI, OpenAIError

from ..core.errors import BackendUnavailable


logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """
You classify a short chat reply into exactly one of a closed set of labels.
Respond ONLY with one JSON object: {"label": <one of the labels or null>, "confidence": <0..1>}.
Use null when the reply does not express any of the labels.
""".strip()


class LabelClassifier:
    """LLM that maps free text onto one label of a closed list."""

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = "gpt-4o-mini",
        threshold: float = 0.6,
    ):
        self.client = client
        self.model = model
        self.threshold = threshold

    async def classify(
        self,
        language: Optional[str],
        domain: str,
        text: str,
        labels: Sequence[str],
    ) -> Optional[str]:
        user_payload = (
            f"Question topic: {domain}\n"
            f"Reply language: {language or 'unknown'}\n"
            f"Labels: {json.dumps(list(labels), ensure_ascii=False)}\n\n"
            "Reply:\n"
            f"{text}"
        )

        try:
            resp = await self.client.responses.create(
                model=self.model,
                temperature=0,
                input=[
                    {
                        "role": "system",
                        "content": [{"type": "input_text", "text": SYSTEM_PROMPT}],
                    },
                    {
                        "role": "user",
                        "content": [{"type": "input_text", "text": user_payload}],
                    },
                ],
            )
        except OpenAIError as exc:
            raise BackendUnavailable("nlu", str(exc)) from exc

        data = self._parse_json(self._extract_text(resp))
        label = data.get("label")
        try:
            confidence = float(data.get("confidence") or 0.0)
        except (TypeError, ValueError):
            confidence = 0.0

        matched = self._canonical(label, labels)
        if matched is None or confidence < self.threshold:
            logger.debug("No label for %r in %s (got %r, %.2f)", text, domain, label, confidence)
            return None
        logger.debug("Classified %r as %s (%.2f)", text, matched, confidence)
        return matched

    def _extract_text(self, response) -> str:
        chunks: List[str] = []
        for item in getattr(response, "output", []) or []:
            for content in getattr(item, "content", []) or []:
                if getattr(content, "type", None) == "output_text":
                    chunks.append(getattr(content, "text", ""))
        return "".join(chunks).strip()

    def _parse_json(self, blob: str) -> Dict[str, Any]:
        try:
            data = json.loads(blob)
            if isinstance(data, dict):
                return data
        except json.JSONDecodeError:
            logger.warning("Classifier returned non-JSON output: %r", blob[:200])
        return {}

    def _canonical(self, label: Any, labels: Sequence[str]) -> Optional[str]:
        if not isinstance(label, str):
            return None
        wanted = label.strip().lower()
        for candidate in labels:
            if candidate.lower() == wanted:
                return candidate
        return None
