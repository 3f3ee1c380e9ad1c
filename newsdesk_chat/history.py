"""Normalization of message history responses.

The history service answers in several shapes. ``extract_history_messages``
checks them in this order and takes the first that holds a list:

1. ``{"history": [...]}``
2. ``{"messages": [...]}``
3. ``{"session": [...]}``
4. ``{"session": {"messages": [...]}}``
5. ``[...]`` (the payload itself)

The legacy endpoint only ever answers with a bare list or ``{"messages": [...]}``.
Raw entries are then turned into ``ChatMessage`` objects by ``normalize_history``.
"""

import logging
from datetime import datetime
from typing import Any, List, Optional

from pydantic import TypeAdapter, ValidationError

from newsdesk_chat.chat_models import ChatMessage, MessageSource, Role

logger = logging.getLogger(__name__)

_ROLE_ALIASES = {
    "user": Role.USER,
    "human": Role.USER,
    "assistant": Role.ASSISTANT,
    "ai": Role.ASSISTANT,
    "bot": Role.ASSISTANT,
}

_timestamp_adapter = TypeAdapter(datetime)


def extract_history_messages(payload: Any) -> List[Any]:
    """Pull the raw message list out of a primary history response."""
    if isinstance(payload, dict):
        for key in ("history", "messages"):
            if isinstance(payload.get(key), list):
                return payload[key]
        session = payload.get("session")
        if isinstance(session, list):
            return session
        if isinstance(session, dict) and isinstance(session.get("messages"), list):
            return session["messages"]
        return []
    if isinstance(payload, list):
        return payload
    return []


def extract_legacy_messages(payload: Any) -> List[Any]:
    """Pull the raw message list out of a legacy history response."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get("messages"), list):
        return payload["messages"]
    return []


def reported_message_count(payload: Any) -> int:
    """``session.messageCount`` from a history response, or 0."""
    if isinstance(payload, dict) and isinstance(payload.get("session"), dict):
        count = payload["session"].get("messageCount") or 0
        try:
            return int(count)
        except (TypeError, ValueError):
            return 0
    return 0


def normalize_role(raw: dict) -> Optional[Role]:
    """Role from ``role`` or the older ``type`` field."""
    value = raw.get("role") or raw.get("type")
    if not isinstance(value, str):
        return None
    return _ROLE_ALIASES.get(value.strip().lower())


def parse_timestamp(value: Any) -> datetime:
    if value is None:
        return datetime.now()
    try:
        return _timestamp_adapter.validate_python(value)
    except ValidationError:
        logger.debug(f"[HISTORY] Unparseable timestamp {value!r}, using now")
        return datetime.now()


def normalize_message(raw: Any) -> Optional[ChatMessage]:
    """Canonical ``ChatMessage`` for one raw history entry, or None when unusable."""
    if not isinstance(raw, dict):
        return None
    role = normalize_role(raw)
    if role is None:
        logger.warning(f"[HISTORY] Skipping message without a known role: {raw.get('role') or raw.get('type')!r}")
        return None

    sources = []
    for item in raw.get("sources") or []:
        if isinstance(item, dict):
            try:
                sources.append(MessageSource.model_validate(item))
            except ValidationError as e:
                logger.debug(f"[HISTORY] Dropping malformed source: {e}")

    fields = {
        "role": role,
        "content": raw.get("content") or "",
        "sources": sources,
        "timestamp": parse_timestamp(raw.get("timestamp")),
        "is_error": bool(raw.get("isError") or raw.get("is_error")),
    }
    if raw.get("id") is not None:
        fields["id"] = raw["id"]
    try:
        return ChatMessage(**fields)
    except ValidationError as e:
        logger.warning(f"[HISTORY] Skipping malformed message: {e}")
        return None


def normalize_history(raw_messages: List[Any]) -> List[ChatMessage]:
    """Normalize a raw message list, dropping entries that cannot be used."""
    messages = []
    for raw in raw_messages:
        message = normalize_message(raw)
        if message is not None:
            messages.append(message)
    return messages
