"""Tests for inbound envelope normalization."""

import pytest

from autorule.engine.normalizer import (
    NormalizationFailure,
    NormalizedEnvelope,
    build_trigger_event,
    infer_toolkit,
    infer_trigger_slug,
    normalize,
)


def test_metadata_format_takes_identity_from_metadata() -> None:
    envelope = {
        "metadata": {"user_id": "u1", "trigger_slug": "MAIL_NEW"},
        "data": {"subject": "hello"},
    }

    result = normalize(envelope)

    assert isinstance(result, NormalizedEnvelope)
    assert result.user_id == "u1"
    assert result.trigger_slug == "MAIL_NEW"
    assert result.event_data == {"subject": "hello"}
    assert result.wire_format == "metadata"


def test_metadata_format_without_data_uses_whole_envelope() -> None:
    envelope = {"metadata": {"user_id": "u1", "trigger_slug": "SLACK_NEW_MESSAGE"}, "text": "hi"}

    result = normalize(envelope)

    assert isinstance(result, NormalizedEnvelope)
    assert result.event_data["text"] == "hi"


def test_data_format_reads_user_and_type() -> None:
    envelope = {"type": "GITHUB_COMMIT_EVENT", "data": {"user_id": "u2", "sha": "abc"}}

    result = normalize(envelope)

    assert isinstance(result, NormalizedEnvelope)
    assert result.user_id == "u2"
    assert result.trigger_slug == "GITHUB_COMMIT_EVENT"
    assert result.wire_format == "data"


def test_wrapped_format_digs_user_out_of_body() -> None:
    envelope = {
        "headers": {"content-type": "application/json"},
        "body": {"data": {"user_id": "u3"}, "message_id": "m1", "sender": "a@b.c"},
    }

    result = normalize(envelope)

    assert isinstance(result, NormalizedEnvelope)
    assert result.user_id == "u3"
    assert result.wire_format == "wrapped"
    # Slug inferred from the Gmail-shaped payload
    assert result.trigger_slug == "GMAIL_NEW_GMAIL_MESSAGE"


def test_wrapped_format_with_empty_body_has_no_user() -> None:
    result = normalize({"headers": {"x-source": "relay"}, "body": {}, "user_id": "outer"})

    assert isinstance(result, NormalizationFailure)
    assert result.wire_format == "wrapped"


@pytest.mark.parametrize("body", [None, "", 0, False])
def test_wrapped_format_needs_a_body(body) -> None:
    result = normalize({"headers": {}, "body": body, "user_id": "u6"})

    assert isinstance(result, NormalizedEnvelope)
    assert result.wire_format == "flat"


def test_wrapped_format_with_non_object_body() -> None:
    result = normalize({"headers": {}, "body": "raw text", "user_id": "u6"})

    assert isinstance(result, NormalizationFailure)
    assert result.wire_format == "wrapped"


def test_flat_format_accepts_camel_case_user_id() -> None:
    result = normalize({"userId": "u4", "channel": "C1", "text": "hey", "user": "U9"})

    assert isinstance(result, NormalizedEnvelope)
    assert result.user_id == "u4"
    assert result.trigger_slug == "SLACK_NEW_MESSAGE"
    assert result.wire_format == "flat"


def test_unknown_shape_gets_unknown_trigger() -> None:
    result = normalize({"user_id": "u5", "foo": "bar"})

    assert isinstance(result, NormalizedEnvelope)
    assert result.trigger_slug == "UNKNOWN_TRIGGER"


def test_missing_user_id_is_a_failure() -> None:
    result = normalize({"metadata": {"trigger_slug": "MAIL_NEW"}, "data": {}})

    assert isinstance(result, NormalizationFailure)
    assert result.wire_format == "metadata"


def test_non_object_envelope_is_a_failure() -> None:
    assert isinstance(normalize(["not", "a", "dict"]), NormalizationFailure)


def test_metadata_wins_over_data_format() -> None:
    envelope = {
        "type": "OTHER",
        "metadata": {"user_id": "meta_user", "trigger_slug": "MAIL_NEW"},
        "data": {"user_id": "data_user"},
    }

    result = normalize(envelope)

    assert result.user_id == "meta_user"
    assert result.trigger_slug == "MAIL_NEW"


def test_infer_toolkit() -> None:
    assert infer_toolkit("GMAIL_NEW_GMAIL_MESSAGE") == "GMAIL"
    assert infer_toolkit("GOOGLECALENDAR_EVENT_CREATED") == "GOOGLECALENDAR"
    assert infer_toolkit("GOOGLEDRIVE_FILE_ADDED") == "GOOGLEDRIVE"
    assert infer_toolkit("SOMETHING_ELSE") == "UNKNOWN"
    assert infer_toolkit(None) == "UNKNOWN"


def test_infer_trigger_slug_calendar() -> None:
    assert infer_trigger_slug({"calendar_id": "primary"}) == "GOOGLECALENDAR_EVENT_CREATED"
    assert infer_trigger_slug({"nothing": True}) is None


def test_build_trigger_event(metadata_envelope: dict) -> None:
    normalized = normalize(metadata_envelope)

    event = build_trigger_event(normalized)

    assert event.id == "msg_1"
    assert event.uuid == "log_abc"
    assert event.user_id == "u1"
    assert event.toolkit_slug == "GMAIL"
    assert event.metadata.trigger_id == "ti_123"
    assert event.metadata.connected_account.id == "ca_1"
    assert event.payload["subject"] == "Invoice #42"
    assert event.original_payload == metadata_envelope
