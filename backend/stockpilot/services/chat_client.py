# Overview: HTTP adapter for the hosted chat model used by the business assistant.

from __future__ import annotations

from typing import Protocol

import httpx
from flask import current_app

ROLE_USER = "user"
ROLE_MODEL = "model"


class ChatClientError(Exception):
    """The chat model could not be reached or returned an unusable reply."""


class ChatClient(Protocol):
    def generate(self, history: list[dict]) -> str:
        """Return the model reply for a full transcript of {role, text} turns."""
        ...


class GeminiChatClient:
    """
    Calls the Gemini generateContent REST endpoint.

    The whole transcript is sent on every call; the service keeps no
    conversation state of its own.
    """

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        base_url: str,
        timeout: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _url(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    @staticmethod
    def _to_contents(history: list[dict]) -> list[dict]:
        return [
            {"role": turn["role"], "parts": [{"text": turn["text"]}]}
            for turn in history
        ]

    @staticmethod
    def _extract_text(body: dict) -> str:
        candidates = body.get("candidates") or []
        if not candidates:
            raise ChatClientError("Chat model returned no candidates")
        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts)
        if not text:
            raise ChatClientError("Chat model returned an empty reply")
        return text

    def generate(self, history: list[dict]) -> str:
        if not self.api_key:
            raise ChatClientError("GEMINI_API_KEY is not configured")

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(
                    self._url(),
                    params={"key": self.api_key},
                    json={"contents": self._to_contents(history)},
                )
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPStatusError as exc:
            raise ChatClientError(f"Chat model request failed with status {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise ChatClientError(f"Chat model request failed: {exc.__class__.__name__}") from exc
        except ValueError as exc:
            raise ChatClientError("Chat model returned invalid JSON") from exc

        return self._extract_text(body)


def get_chat_client() -> ChatClient:
    """Client registered on the app (tests inject fakes), else one built from config."""
    client = current_app.extensions.get("stockpilot.chat_client")
    if client is not None:
        return client

    cfg = current_app.config
    client = GeminiChatClient(
        api_key=cfg.get("GEMINI_API_KEY") or "",
        model=cfg.get("GEMINI_MODEL", "gemini-2.5-flash"),
        base_url=cfg.get("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"),
        timeout=float(cfg.get("CHAT_TIMEOUT_SECONDS", 60)),
    )
    current_app.extensions["stockpilot.chat_client"] = client
    return client
