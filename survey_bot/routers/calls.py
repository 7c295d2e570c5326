import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response
from pydantic import Field

from survey_bot.dependencies import CallServiceDep, ElevenLabsDep, SettingsDep, SupabaseDep
from survey_bot.mappers.customer_csv import is_valid_phone
from survey_bot.schemas.elevenlabs import VoicesResponse
from survey_bot.schemas.responses import (
    AgentConfig,
    BatchCallResponse,
    CallDetailResponse,
    CallStartedResponse,
    CamelModel,
    ProcessingResult,
)
from survey_bot.schemas.supabase import SurveyCall
from survey_bot.services.calls import CallService
from survey_bot.services.elevenlabs import ElevenLabsService
from survey_bot.survey import build_agent_config

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/calls", tags=["calls"])


class TestCallRequest(CamelModel):
    first_name: str | None = None
    phone_number: str | None = None


class StartCallRequest(CamelModel):
    customer_id: str | None = None
    phone_number: str | None = None
    first_name: str | None = None


class BatchCallRequest(CamelModel):
    customer_ids: list[str] | None = None
    max_concurrent: int | None = Field(default=None, ge=1)


class TextToSpeechRequest(CamelModel):
    voice_id: str | None = None
    text: str | None = None


def _require_calls(service: CallService | None) -> CallService:
    if service is None:
        raise HTTPException(status_code=503, detail="ElevenLabs not configured")
    return service


def _require_elevenlabs(service: ElevenLabsService | None) -> ElevenLabsService:
    if service is None:
        raise HTTPException(status_code=503, detail="ElevenLabs not configured")
    return service


@router.post("/test", response_model=CallStartedResponse)
async def test_call(request: TestCallRequest, service: CallServiceDep) -> CallStartedResponse:
    if not request.first_name or not request.phone_number:
        raise HTTPException(status_code=400, detail="firstName and phoneNumber are required")
    if not is_valid_phone(request.phone_number):
        raise HTTPException(status_code=400, detail="Invalid phone number format")

    call = await _require_calls(service).place_call(request.first_name, request.phone_number)
    logger.info("Test call %s queued (sid=%s)", call.id, call.call_sid)
    return CallStartedResponse(
        call_id=call.id,
        call_sid=call.call_sid,
        status=call.call_status,
        message="Test call initiated successfully",
    )


@router.post("/start", response_model=CallStartedResponse)
async def start_call(
    request: StartCallRequest,
    service: CallServiceDep,
    supabase: SupabaseDep,
) -> CallStartedResponse:
    if not request.customer_id or not request.phone_number or not request.first_name:
        raise HTTPException(
            status_code=400,
            detail="customerId, phoneNumber, and firstName are required",
        )
    calls = _require_calls(service)

    customer = await supabase.get_customer_by_id(request.customer_id)
    if customer is None:
        raise HTTPException(status_code=404, detail="Customer not found")

    call = await calls.place_call(request.first_name, request.phone_number, customer)
    logger.info("Call %s queued for customer %s", call.id, customer.id)
    return CallStartedResponse(call_id=call.id, call_sid=call.call_sid, status=call.call_status)


@router.post("/batch", response_model=BatchCallResponse)
async def start_batch_calls(
    request: BatchCallRequest,
    service: CallServiceDep,
    settings: SettingsDep,
) -> BatchCallResponse:
    if not request.customer_ids:
        raise HTTPException(status_code=400, detail="customerIds array is required")

    return await _require_calls(service).start_batch(
        request.customer_ids,
        request.max_concurrent or settings.batch_max_concurrent,
    )


@router.get("/voices", response_model=VoicesResponse)
async def get_voices(elevenlabs: ElevenLabsDep) -> VoicesResponse:
    return await _require_elevenlabs(elevenlabs).get_voices()


@router.post("/text-to-speech", response_class=Response)
async def text_to_speech(request: TextToSpeechRequest, elevenlabs: ElevenLabsDep) -> Response:
    if not request.voice_id or not request.text:
        raise HTTPException(status_code=400, detail="voiceId and text are required")

    audio = await _require_elevenlabs(elevenlabs).text_to_speech(request.voice_id, request.text)
    return Response(content=audio, media_type="audio/mpeg")


@router.get("/agent-config", response_model=AgentConfig)
async def get_agent_config(settings: SettingsDep) -> AgentConfig:
    return build_agent_config(settings.elevenlabs_agent_id)


@router.get("/{call_id}", response_model=CallDetailResponse)
async def get_call(call_id: str, supabase: SupabaseDep) -> CallDetailResponse:
    call = await supabase.get_call_by_id(call_id)
    if call is None:
        raise HTTPException(status_code=404, detail="Call not found")

    responses = await supabase.get_responses_by_call_id(call_id)
    transcript = await supabase.get_transcript_by_call_id(call_id)
    return CallDetailResponse(
        call=call,
        responses=responses,
        transcript=transcript.transcript if transcript else None,
    )


@router.post("/{call_id}/sync", response_model=ProcessingResult)
async def sync_call(
    call_id: str,
    service: CallServiceDep,
    supabase: SupabaseDep,
) -> ProcessingResult:
    calls = _require_calls(service)

    call = await supabase.get_call_by_id(call_id)
    if call is None:
        raise HTTPException(status_code=404, detail="Call not found")
    if not call.call_sid:
        raise HTTPException(status_code=409, detail="Call has no conversation id")

    return await calls.sync_call(call)


@router.get("", response_model=list[SurveyCall])
async def list_calls(supabase: SupabaseDep) -> list[SurveyCall]:
    return await supabase.get_calls()
