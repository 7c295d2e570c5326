import json

import httpx
import respx
from httpx import Response

from survey_bot.services.supabase import SupabaseService
from survey_bot.services.transcripts import TranscriptService
from survey_bot.services.webhook import WebhookService, event_type, extract_call_sid

SUPABASE_URL = "https://test-project.supabase.co"
CALLS_URL = f"{SUPABASE_URL}/rest/v1/survey_calls"
RESPONSES_URL = f"{SUPABASE_URL}/rest/v1/survey_responses"
TRANSCRIPTS_URL = f"{SUPABASE_URL}/rest/v1/call_transcripts"

CALL_ID = "6f1d2c3b-4a5e-4f60-8a7b-9c0d1e2f3a4b"


def _call_row(**overrides) -> dict:
    row = {
        "id": CALL_ID,
        "customer_first_name": "John",
        "customer_phone": "+61412345678",
        "call_sid": "conv-1",
        "call_status": "in-progress",
    }
    row.update(overrides)
    return row


def _service(client: httpx.AsyncClient) -> WebhookService:
    supabase = SupabaseService(client, SUPABASE_URL, "key")
    return WebhookService(supabase, TranscriptService(supabase))


def _echo_rows(request: httpx.Request) -> Response:
    rows = json.loads(request.content)
    return Response(201, json=[{"id": f"r-{i}", **row} for i, row in enumerate(rows)])


# --- call id extraction ---


def test_event_type_falls_back_to_event_type_key():
    assert event_type({"type": "conversation_started"}) == "conversation_started"
    assert event_type({"event_type": "user_message"}) == "user_message"
    assert event_type({}) == "unknown"


def test_extract_call_sid_post_call_uses_data_conversation_id():
    event = {
        "type": "post_call_transcription",
        "data": {
            "conversation_id": "conv-1",
            "metadata": {"phone_call": {"call_sid": "CA-1"}},
        },
    }

    assert extract_call_sid(event, header_sid="header-sid") == "conv-1"


def test_extract_call_sid_post_call_falls_back_to_phone_call():
    event = {
        "type": "call_initiation_failure",
        "data": {"metadata": {"phone_call": {"call_sid": "CA-1"}}},
    }

    assert extract_call_sid(event) == "CA-1"


def test_extract_call_sid_initiation_failure_falls_back_to_header_and_body():
    event = {"type": "call_initiation_failure", "data": {"failure_reason": "busy"}}

    assert extract_call_sid(event, header_sid="CA123") == "CA123"
    assert extract_call_sid({**event, "call_sid": "CA456"}) == "CA456"
    assert extract_call_sid({**event, "call_id": "c-7"}) == "c-7"


@respx.mock
async def test_initiation_failure_with_header_sid_marks_no_answer():
    route = respx.patch(CALLS_URL).mock(
        return_value=Response(200, json=[_call_row(call_sid="CA123", call_status="no-answer")])
    )
    event = {"type": "call_initiation_failure", "data": {"failure_reason": "busy"}}

    async with httpx.AsyncClient() as client:
        result = await _service(client).handle(event, extract_call_sid(event, "CA123"))

    assert result.status == "processed"
    assert route.calls[0].request.url.params["call_sid"] == "eq.CA123"
    assert json.loads(route.calls[0].request.content)["call_status"] == "no-answer"


def test_extract_call_sid_live_events_prefer_header():
    event = {"type": "user_message", "call_sid": "body-sid"}

    assert extract_call_sid(event, header_sid="header-sid") == "header-sid"
    assert extract_call_sid(event) == "body-sid"
    assert extract_call_sid({"type": "user_message", "call_id": "c-9"}) == "c-9"
    assert extract_call_sid({"type": "user_message"}) is None


# --- dispatch ---


@respx.mock
async def test_post_call_transcription_processes_conversation():
    respx.get(CALLS_URL).mock(return_value=Response(200, json=[_call_row()]))
    respx.get(RESPONSES_URL).mock(return_value=Response(200, json=[]))
    respx.get(TRANSCRIPTS_URL).mock(return_value=Response(200, json=[]))
    respx.delete(RESPONSES_URL).mock(return_value=Response(204))
    respx.delete(TRANSCRIPTS_URL).mock(return_value=Response(204))
    respx.post(TRANSCRIPTS_URL).mock(side_effect=_echo_rows)
    responses = respx.post(RESPONSES_URL).mock(side_effect=_echo_rows)
    respx.patch(CALLS_URL).mock(
        return_value=Response(200, json=[_call_row(call_status="completed", call_duration=60)])
    )

    event = {
        "type": "post_call_transcription",
        "data": {
            "conversation_id": "conv-1",
            "status": "done",
            "transcript": [
                {"role": "agent", "message": "How long have you been using Great Southern Fuels?"},
                {"role": "user", "message": "Five years"},
            ],
            "analysis": {"data_collection_results": {"q1": {"value": "Five years"}}},
            "metadata": {"call_duration_secs": 60},
        },
    }

    async with httpx.AsyncClient() as client:
        result = await _service(client).handle(event, extract_call_sid(event))

    assert result.status == "processed"
    assert result.call_sid == "conv-1"
    assert result.processing.source == "data_collection"
    assert result.processing.responses_saved == 1
    assert result.processing.call_duration == 60
    assert json.loads(responses.calls[0].request.content)[0]["response_text"] == "Five years"


@respx.mock
async def test_post_call_transcription_unknown_call_is_ignored():
    respx.get(CALLS_URL).mock(return_value=Response(200, json=[]))
    writes = respx.post(RESPONSES_URL).mock(side_effect=_echo_rows)

    event = {"type": "post_call_transcription", "data": {"conversation_id": "conv-x"}}

    async with httpx.AsyncClient() as client:
        result = await _service(client).handle(event, "conv-x")

    assert result.status == "ignored"
    assert result.message == "Call not found"
    assert not writes.called


@respx.mock
async def test_initiation_failure_busy_marks_no_answer():
    route = respx.patch(CALLS_URL).mock(
        return_value=Response(200, json=[_call_row(call_status="no-answer")])
    )
    event = {
        "type": "call_initiation_failure",
        "data": {"conversation_id": "conv-1", "failure_reason": "busy"},
    }

    async with httpx.AsyncClient() as client:
        result = await _service(client).handle(event, extract_call_sid(event))

    assert result.status == "processed"
    assert json.loads(route.calls[0].request.content)["call_status"] == "no-answer"


@respx.mock
async def test_initiation_failure_other_reason_marks_failed():
    route = respx.patch(CALLS_URL).mock(
        return_value=Response(200, json=[_call_row(call_status="failed")])
    )
    event = {
        "type": "call_initiation_failure",
        "data": {"conversation_id": "conv-1", "failure_reason": "invalid_number"},
    }

    async with httpx.AsyncClient() as client:
        await _service(client).handle(event, extract_call_sid(event))

    assert json.loads(route.calls[0].request.content)["call_status"] == "failed"


@respx.mock
async def test_conversation_started_and_ended_update_status():
    route = respx.patch(CALLS_URL).mock(return_value=Response(200, json=[_call_row()]))

    async with httpx.AsyncClient() as client:
        service = _service(client)
        await service.handle({"type": "conversation_started"}, "conv-1")
        await service.handle({"type": "conversation_ended"}, "conv-1")

    statuses = [json.loads(c.request.content)["call_status"] for c in route.calls]
    assert statuses == ["in-progress", "completed"]
    assert route.calls[0].request.url.params["call_sid"] == "eq.conv-1"


@respx.mock
async def test_status_event_for_unknown_call_is_ignored():
    respx.patch(CALLS_URL).mock(return_value=Response(200, json=[]))

    async with httpx.AsyncClient() as client:
        result = await _service(client).handle({"type": "conversation_started"}, "missing")

    assert result.status == "ignored"
    assert result.message == "Call not found"


async def test_status_event_without_sid_is_ignored():
    async with httpx.AsyncClient() as client:
        result = await _service(client).handle({"type": "conversation_ended"}, None)

    assert result.status == "ignored"


@respx.mock
async def test_user_message_saves_next_answer():
    respx.get(CALLS_URL).mock(return_value=Response(200, json=[_call_row()]))
    respx.get(RESPONSES_URL).mock(return_value=Response(200, json=[]))
    route = respx.post(RESPONSES_URL).mock(side_effect=_echo_rows)

    event = {"type": "user_message", "message": {"content": "It has been great"}}

    async with httpx.AsyncClient() as client:
        result = await _service(client).handle(event, "conv-1")

    assert result.status == "processed"
    assert result.message == "Saved answer to question 1"
    body = json.loads(route.calls[0].request.content)[0]
    assert body["response_text"] == "It has been great"
    assert body["response_sentiment"] == "positive"


async def test_assistant_message_is_only_logged():
    async with httpx.AsyncClient() as client:
        result = await _service(client).handle(
            {"type": "assistant_message", "text": "Thanks John"}, "conv-1"
        )

    assert result.status == "processed"


async def test_unknown_event_is_ignored():
    async with httpx.AsyncClient() as client:
        result = await _service(client).handle({"type": "audio_chunk"}, "conv-1")

    assert result.status == "ignored"
    assert result.event_type == "audio_chunk"
