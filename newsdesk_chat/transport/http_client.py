"""One-shot request/response calls against the chat backend over HTTP."""

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from newsdesk_chat.chat_config import ChatClientConfig
from newsdesk_chat.chat_types import TransportError

logger = logging.getLogger(__name__)


class HttpChatClient:
    """Thin aiohttp wrapper, one method per backend endpoint.

    Methods return the decoded JSON body. Connection failures, timeouts and
    non-2xx answers raise ``TransportError``.
    """

    def __init__(self, config: ChatClientConfig, session: Optional[aiohttp.ClientSession] = None):
        self.config = config
        self._session = session
        self._owns_session = session is None

    def _build_headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=self._build_headers(),
                timeout=aiohttp.ClientTimeout(total=self.config.request_timeout),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _request(self, method: str, path: str, *, json: Any = None,
                       params: Optional[Dict[str, str]] = None) -> Any:
        session = await self._ensure_session()
        url = self.config.base_url.rstrip("/") + path
        logger.debug(f"[HTTP] {method} {url}")
        try:
            async with session.request(method, url, json=json, params=params) as resp:
                if resp.status >= 400:
                    body = await resp.text()
                    raise TransportError(f"HTTP {resp.status} for {method} {path}: {body}", status=resp.status)
                if resp.status == 204:
                    return None
                body = await resp.text()
                if not body:
                    return None
                try:
                    return await resp.json(content_type=None)
                except ValueError as e:
                    raise TransportError(f"Invalid JSON from {method} {path}: {e}", status=resp.status) from e
        except aiohttp.ClientError as e:
            raise TransportError(f"{method} {path} failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise TransportError(f"{method} {path} timed out") from e

    # ── Sessions ──────────────────────────────────────────────

    async def list_sessions(self) -> Any:
        return await self._request("GET", "/api/chat/sessions")

    async def create_session(self, title: Optional[str] = None) -> Any:
        return await self._request("POST", "/api/chat/sessions", json={"title": title})

    async def rename_session(self, session_id: str, title: str) -> Any:
        return await self._request("PUT", f"/api/chat/sessions/{session_id}", json={"title": title})

    async def delete_session(self, session_id: str) -> Any:
        return await self._request("DELETE", f"/api/chat/sessions/{session_id}",
                                   params={"deleteSession": "true"})

    # ── Messages ──────────────────────────────────────────────

    async def send_message(self, message: str, session_id: Optional[str] = None) -> Any:
        return await self._request("POST", "/chat", json={"message": message, "session_id": session_id})

    async def get_session_history(self, session_id: str) -> Any:
        return await self._request("GET", f"/api/chat/sessions/{session_id}/history")

    async def get_legacy_history(self, session_id: str) -> Any:
        return await self._request("GET", f"/api/chat/history/{session_id}")
