import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest
import respx
from httpx import Response

from survey_bot.exceptions.custom import ElevenLabsError
from survey_bot.schemas.supabase import SurveyCall
from survey_bot.services.calls import CallService, chunked
from survey_bot.services.elevenlabs import CONVERSATIONS_URL, OUTBOUND_CALL_URL, ElevenLabsService
from survey_bot.services.supabase import SupabaseService
from survey_bot.services.transcripts import TranscriptService

SUPABASE_URL = "https://test-project.supabase.co"
CUSTOMERS_URL = f"{SUPABASE_URL}/rest/v1/customers"
CALLS_URL = f"{SUPABASE_URL}/rest/v1/survey_calls"

CUSTOMER_IDS = [f"00000000-0000-4000-8000-00000000000{i}" for i in range(1, 8)]
MISSING_ID = "00000000-0000-4000-8000-000000000099"


def _customer_lookup(request: httpx.Request) -> Response:
    customer_id = request.url.params["id"].removeprefix("eq.")
    if customer_id == MISSING_ID:
        return Response(200, json=[])
    return Response(200, json=[{
        "id": customer_id,
        "first_name": f"Customer {customer_id[-1]}",
        "phone_number": f"+6141234567{customer_id[-1]}",
        "campaign_id": "spring",
    }])


def _echo_call(request: httpx.Request) -> Response:
    row = json.loads(request.content)[0]
    return Response(201, json=[{"id": f"call-{row['call_sid']}", **row}])


def _outbound(request: httpx.Request) -> Response:
    number = json.loads(request.content)["to_number"]
    return Response(200, json={"success": True, "conversation_id": f"conv-{number[-1]}"})


def _service(client: httpx.AsyncClient, delay: float = 1.0) -> CallService:
    supabase = SupabaseService(client, SUPABASE_URL, "key")
    elevenlabs = ElevenLabsService(client, "key", "agent-1", "phone-1")
    return CallService(supabase, elevenlabs, TranscriptService(supabase), batch_delay=delay)


def test_chunked():
    assert chunked([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
    assert chunked([1, 2], 5) == [[1, 2]]
    assert chunked([], 3) == []


@respx.mock
async def test_place_call_records_queued_call_with_customer():
    respx.post(OUTBOUND_CALL_URL).mock(side_effect=_outbound)
    calls = respx.post(CALLS_URL).mock(side_effect=_echo_call)
    respx.get(CUSTOMERS_URL).mock(side_effect=_customer_lookup)

    async with httpx.AsyncClient() as client:
        service = _service(client)
        customer = await SupabaseService(client, SUPABASE_URL, "key").get_customer_by_id(CUSTOMER_IDS[0])
        call = await service.place_call("John", "+61412345671", customer)

    assert call.call_sid == "conv-1"
    row = json.loads(calls.calls[0].request.content)[0]
    assert row == {
        "customer_first_name": "John",
        "customer_phone": "+61412345671",
        "call_sid": "conv-1",
        "call_status": "queued",
        "customer_id": CUSTOMER_IDS[0],
        "campaign_id": "spring",
    }


@respx.mock
async def test_place_call_does_not_record_when_dial_fails():
    respx.post(OUTBOUND_CALL_URL).mock(return_value=Response(500, text="boom"))
    calls = respx.post(CALLS_URL).mock(side_effect=_echo_call)

    async with httpx.AsyncClient() as client:
        service = _service(client)
        with pytest.raises(ElevenLabsError):
            await service.place_call("John", "+61412345678")

    assert not calls.called


@respx.mock
async def test_start_batch_chunks_and_sleeps_between_groups():
    respx.get(CUSTOMERS_URL).mock(side_effect=_customer_lookup)
    respx.post(OUTBOUND_CALL_URL).mock(side_effect=_outbound)
    respx.post(CALLS_URL).mock(side_effect=_echo_call)

    with patch("survey_bot.services.calls.asyncio.sleep", new_callable=AsyncMock) as sleep:
        async with httpx.AsyncClient() as client:
            result = await _service(client).start_batch(CUSTOMER_IDS, max_concurrent=3)

    # 7 customers in groups of 3 -> 3 groups -> 2 pauses
    assert sleep.await_count == 2
    sleep.assert_awaited_with(1.0)
    assert result.total == 7
    assert result.successful == 7
    assert result.failed == 0
    assert [r.customer_id for r in result.results] == CUSTOMER_IDS
    assert result.results[0].call_sid == "conv-1"
    assert result.results[0].status == "queued"


@respx.mock
async def test_start_batch_single_group_does_not_sleep():
    respx.get(CUSTOMERS_URL).mock(side_effect=_customer_lookup)
    respx.post(OUTBOUND_CALL_URL).mock(side_effect=_outbound)
    respx.post(CALLS_URL).mock(side_effect=_echo_call)

    with patch("survey_bot.services.calls.asyncio.sleep", new_callable=AsyncMock) as sleep:
        async with httpx.AsyncClient() as client:
            result = await _service(client).start_batch(CUSTOMER_IDS[:2], max_concurrent=5)

    assert sleep.await_count == 0
    assert result.successful == 2


@respx.mock
async def test_start_batch_records_per_customer_errors():
    respx.get(CUSTOMERS_URL).mock(side_effect=_customer_lookup)
    respx.post(CALLS_URL).mock(side_effect=_echo_call)

    def _outbound_or_fail(request: httpx.Request) -> Response:
        if json.loads(request.content)["to_number"].endswith("2"):
            return Response(400, text="Invalid number")
        return _outbound(request)

    respx.post(OUTBOUND_CALL_URL).mock(side_effect=_outbound_or_fail)

    async with httpx.AsyncClient() as client:
        result = await _service(client, delay=0).start_batch(
            [CUSTOMER_IDS[0], CUSTOMER_IDS[1], MISSING_ID], max_concurrent=2
        )

    assert result.total == 3
    assert result.successful == 1
    assert result.failed == 2
    assert result.results[0].error is None
    assert result.results[1].error == "Invalid number"
    assert result.results[2].error == f"Customer {MISSING_ID} not found"
    assert result.results[2].call_id is None


@respx.mock
async def test_sync_call_processes_fetched_conversation():
    respx.get(f"{CONVERSATIONS_URL}/conv-1").mock(
        return_value=Response(200, json={"conversation_id": "conv-1", "status": "done"})
    )
    call = SurveyCall(
        id="call-1",
        customer_first_name="John",
        customer_phone="+61412345678",
        call_sid="conv-1",
        call_status="in-progress",
    )

    async with httpx.AsyncClient() as client:
        service = _service(client)
        with patch.object(
            TranscriptService, "process_conversation", new_callable=AsyncMock
        ) as process:
            await service.sync_call(call)

    process.assert_awaited_once()
    assert process.await_args.args[0] is call
    assert process.await_args.args[1].conversation_id == "conv-1"
