"""Inbound event envelope normalization.

Providers deliver trigger events in several wire shapes. Each shape has its
own parser; parsers are tried in a fixed priority order and the first one
that recognizes the envelope wins:

1. ``metadata`` object (current format)
2. ``data`` object carrying ``user_id`` (previous format)
3. ``headers`` + ``body`` wrapper (raw relay format)
4. user id at the top level (fallback)
"""

import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from autorule.core.logging import get_logger
from autorule.models.event import ConnectedAccount, TriggerEvent, TriggerMetadata

logger = get_logger(__name__)

UNKNOWN_TRIGGER = "UNKNOWN_TRIGGER"
UNKNOWN_TOOLKIT = "UNKNOWN"

# Ordered: first fragment found in the trigger slug decides the toolkit
TOOLKIT_FRAGMENTS: tuple[tuple[str, str], ...] = (
    ("GMAIL", "GMAIL"),
    ("CALENDAR", "GOOGLECALENDAR"),
    ("SLACK", "SLACK"),
    ("NOTION", "NOTION"),
    ("GITHUB", "GITHUB"),
    ("DRIVE", "GOOGLEDRIVE"),
)


@dataclass(frozen=True)
class NormalizedEnvelope:
    """Identity and payload extracted from an envelope."""

    user_id: str
    trigger_slug: str
    event_data: dict[str, Any]
    wire_format: str
    raw: dict[str, Any] = field(repr=False, default_factory=dict)


@dataclass(frozen=True)
class NormalizationFailure:
    """Envelope that cannot be dispatched."""

    reason: str
    wire_format: str | None = None


@dataclass(frozen=True)
class _ParsedEnvelope:
    user_id: str | None
    trigger_slug: str | None
    event_data: dict[str, Any]
    wire_format: str


def _as_dict(value: Any) -> dict[str, Any] | None:
    return dict(value) if isinstance(value, Mapping) else None


def _as_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _parse_metadata_format(envelope: dict[str, Any]) -> _ParsedEnvelope | None:
    meta = _as_dict(envelope.get("metadata"))
    if meta is None:
        return None
    data = _as_dict(envelope.get("data"))
    return _ParsedEnvelope(
        user_id=_as_str(meta.get("user_id")),
        trigger_slug=_as_str(meta.get("trigger_slug")),
        event_data=data if data is not None else envelope,
        wire_format="metadata",
    )


def _parse_data_format(envelope: dict[str, Any]) -> _ParsedEnvelope | None:
    data = _as_dict(envelope.get("data"))
    if data is None or not data.get("user_id"):
        return None
    return _ParsedEnvelope(
        user_id=_as_str(data.get("user_id")),
        trigger_slug=_as_str(envelope.get("type")),
        event_data=data,
        wire_format="data",
    )


def _parse_wrapped_format(envelope: dict[str, Any]) -> _ParsedEnvelope | None:
    if "headers" not in envelope or "body" not in envelope:
        return None
    raw_body = envelope["body"]
    # Empty objects and arrays still count as a body; null, false, 0 and "" do not
    if not isinstance(raw_body, (Mapping, list)) and not raw_body:
        return None
    body = _as_dict(raw_body) or {}
    user_id = (
        _as_str(body.get("user_id"))
        or _as_str((_as_dict(body.get("metadata")) or {}).get("user_id"))
        or _as_str((_as_dict(body.get("data")) or {}).get("user_id"))
    )
    return _ParsedEnvelope(
        user_id=user_id,
        trigger_slug=None,
        event_data=body,
        wire_format="wrapped",
    )


def _parse_flat_format(envelope: dict[str, Any]) -> _ParsedEnvelope:
    return _ParsedEnvelope(
        user_id=_as_str(envelope.get("user_id")) or _as_str(envelope.get("userId")),
        trigger_slug=None,
        event_data=envelope,
        wire_format="flat",
    )


_PARSERS: tuple[Callable[[dict[str, Any]], _ParsedEnvelope | None], ...] = (
    _parse_metadata_format,
    _parse_data_format,
    _parse_wrapped_format,
)


def infer_trigger_slug(data: Mapping[str, Any]) -> str | None:
    """Guess the trigger type from well-known payload shapes."""
    if data.get("message_id") and (data.get("message_text") or data.get("sender")):
        return "GMAIL_NEW_GMAIL_MESSAGE"
    if data.get("thread_id") and data.get("label_ids"):
        return "GMAIL_NEW_GMAIL_MESSAGE"
    if data.get("event_id") or data.get("calendar_id"):
        return "GOOGLECALENDAR_EVENT_CREATED"
    if data.get("channel") and data.get("text") and data.get("user"):
        return "SLACK_NEW_MESSAGE"
    return None


def infer_toolkit(trigger_slug: str | None) -> str:
    """Derive the provider slug from a trigger slug."""
    if not trigger_slug:
        return UNKNOWN_TOOLKIT
    slug = trigger_slug.upper()
    for fragment, toolkit in TOOLKIT_FRAGMENTS:
        if fragment in slug:
            return toolkit
    return UNKNOWN_TOOLKIT


def normalize(envelope: Mapping[str, Any]) -> NormalizedEnvelope | NormalizationFailure:
    """Normalize an inbound envelope.

    Args:
        envelope: Parsed JSON body of the inbound request

    Returns:
        Normalized envelope, or a failure when no user id can be resolved
    """
    if not isinstance(envelope, Mapping):
        return NormalizationFailure(reason="Envelope is not a JSON object")

    raw = dict(envelope)
    parsed: _ParsedEnvelope | None = None
    for parser in _PARSERS:
        parsed = parser(raw)
        if parsed is not None:
            break
    if parsed is None:
        parsed = _parse_flat_format(raw)

    trigger_slug = (
        parsed.trigger_slug
        or infer_trigger_slug(parsed.event_data)
        or UNKNOWN_TRIGGER
    )

    if not parsed.user_id:
        logger.info(
            "Envelope has no user id",
            wire_format=parsed.wire_format,
            keys=sorted(raw.keys())[:20],
        )
        return NormalizationFailure(
            reason="No user_id in webhook payload",
            wire_format=parsed.wire_format,
        )

    return NormalizedEnvelope(
        user_id=parsed.user_id,
        trigger_slug=trigger_slug,
        event_data=parsed.event_data,
        wire_format=parsed.wire_format,
        raw=raw,
    )


def build_trigger_event(normalized: NormalizedEnvelope) -> TriggerEvent:
    """Turn a normalized envelope into the canonical trigger event."""
    data = normalized.event_data
    raw_meta = _as_dict(normalized.raw.get("metadata")) or {}
    toolkit = infer_toolkit(normalized.trigger_slug)
    event_id = (
        _as_str(data.get("id"))
        or _as_str(data.get("message_id"))
        or _as_str(normalized.raw.get("id"))
        or str(uuid.uuid4())
    )
    account_id = (
        _as_str(raw_meta.get("connected_account_id"))
        or _as_str(data.get("connection_id"))
        or ""
    )

    return TriggerEvent(
        id=event_id,
        uuid=_as_str(raw_meta.get("log_id")) or _as_str(normalized.raw.get("id")) or str(uuid.uuid4()),
        trigger_slug=normalized.trigger_slug,
        toolkit_slug=toolkit,
        user_id=normalized.user_id,
        payload=data,
        original_payload=normalized.raw,
        metadata=TriggerMetadata(
            toolkit_slug=toolkit,
            trigger_slug=normalized.trigger_slug,
            trigger_id=_as_str(raw_meta.get("trigger_id")) or "",
            connected_account=ConnectedAccount(
                id=account_id,
                user_id=normalized.user_id,
            ),
        ),
    )
