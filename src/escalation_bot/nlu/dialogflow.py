from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from ..config import BotConfig
from ..core.errors import BackendUnavailable


logger = logging.getLogger(__name__)


@dataclass
class Intent:
    id: str
    name: str

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "name": self.name}


def _intent_id(resource_name: str) -> str:
    # projects/<project>/agent/intents/<id>
    return resource_name.rstrip("/").split("/")[-1]


class IntentCatalog:
    """Intent management on the Dialogflow v2 REST API."""

    def __init__(
        self,
        project_id: str,
        access_token: str,
        base_url: str = "https://dialogflow.googleapis.com/v2",
        language: str = "en",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not project_id:
            raise ValueError("Dialogflow project id is required")
        self.project_id = project_id
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.language = language
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_config(cls, config: BotConfig) -> "IntentCatalog":
        return cls(
            project_id=config.dialogflow_project_id,
            access_token=config.dialogflow_access_token,
            base_url=config.dialogflow_base_url,
            language=config.dialogflow_language,
            timeout=config.http_timeout,
        )

    @property
    def intents_path(self) -> str:
        return f"/projects/{self.project_id}/agent/intents"

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            headers = {"Content-Type": "application/json; charset=utf-8"}
            if self.access_token:
                headers["Authorization"] = f"Bearer {self.access_token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        client = await self._get_client()
        try:
            response = await client.request(method, path, params=params, json=json)
        except httpx.TimeoutException as e:
            raise BackendUnavailable(
                "dialogflow",
                f"request timed out after {self.timeout}s",
                details={"method": method, "path": path},
            ) from e
        except httpx.HTTPError as e:
            raise BackendUnavailable(
                "dialogflow",
                "failed to reach the API",
                details={"method": method, "path": path, "error": str(e)},
            ) from e

        if response.status_code >= 400:
            raise BackendUnavailable(
                "dialogflow",
                f"API error: {response.status_code} - {response.text}",
                details={"status_code": response.status_code, "path": path},
            )
        if not response.content:
            return {}
        return response.json()

    # ---------- catalog ----------

    async def list_intents(self) -> List[Intent]:
        intents: List[Intent] = []
        page_token: Optional[str] = None
        while True:
            params: Dict[str, Any] = {"languageCode": self.language, "pageSize": 1000}
            if page_token:
                params["pageToken"] = page_token
            data = await self._request("GET", self.intents_path, params=params)
            for item in data.get("intents", []):
                intents.append(Intent(id=_intent_id(item["name"]), name=item.get("displayName", "")))
            page_token = data.get("nextPageToken")
            if not page_token:
                break
        logger.debug("Fetched %d intent(s)", len(intents))
        return intents

    async def add_intent(
        self,
        name: str,
        action: str,
        training_phrase: str,
        response_text: str,
    ) -> Intent:
        body = {
            "displayName": name,
            "action": action,
            "trainingPhrases": [_training_phrase(training_phrase)],
            "messages": [{"text": {"text": [response_text]}}],
        }
        data = await self._request(
            "POST", self.intents_path, params={"languageCode": self.language}, json=body
        )
        intent = Intent(id=_intent_id(data.get("name", "")), name=data.get("displayName", name))
        logger.info("Created intent %s (%s)", intent.name, intent.id)
        return intent

    async def add_sentence(self, intent_id: str, training_phrase: str) -> None:
        path = f"{self.intents_path}/{intent_id}"
        intent = await self._request(
            "GET", path, params={"languageCode": self.language, "intentView": "INTENT_VIEW_FULL"}
        )
        phrases = list(intent.get("trainingPhrases", []))
        phrases.append(_training_phrase(training_phrase))
        await self._request(
            "PATCH",
            path,
            params={"languageCode": self.language, "updateMask": "trainingPhrases"},
            json={"name": intent.get("name"), "trainingPhrases": phrases},
        )
        logger.info("Added training phrase to intent %s", intent_id)


def _training_phrase(text: str) -> Dict[str, Any]:
    return {"type": "EXAMPLE", "parts": [{"text": text}]}
