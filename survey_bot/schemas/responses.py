from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from survey_bot.schemas.supabase import Customer, SurveyCall, SurveyResponse


class CamelModel(BaseModel):
    """Wire models whose JSON keys are camelCase (``callSid``, ``customerIds``)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CallStartedResponse(CamelModel):
    success: bool = True
    call_id: str
    call_sid: str
    status: str
    message: str | None = None


class BatchCallResult(CamelModel):
    customer_id: str
    call_id: str | None = None
    call_sid: str | None = None
    status: str | None = None
    error: str | None = None


class BatchCallResponse(CamelModel):
    success: bool = True
    total: int
    successful: int
    failed: int
    results: list[BatchCallResult]


class CustomerRow(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    phone_number: str | None = None
    company_name: str | None = None
    campaign_id: str | None = None
    error: str | None = None


class CustomerUploadResponse(CamelModel):
    success: bool = True
    total: int
    inserted: int
    errors: int
    customers: list[Customer]
    error_details: list[CustomerRow]


class CustomerCreatedResponse(BaseModel):
    success: bool = True
    customer: Customer


class CallDetailResponse(BaseModel):
    call: SurveyCall
    responses: list[SurveyResponse]
    transcript: list[dict] | None = None


class QuestionSentiment(BaseModel):
    question_number: int
    question_text: str
    positive: int = 0
    neutral: int = 0
    negative: int = 0
    total: int = 0


class VoiceSettings(BaseModel):
    stability: float
    similarity_boost: float


class AgentConfig(BaseModel):
    agent_id: str
    system_prompt: str
    voice_settings: VoiceSettings
    model: str


class ProcessingResult(BaseModel):
    call_id: str
    conversation_id: str
    source: str  # "data_collection" | "transcript"
    responses_saved: int
    call_status: str
    call_duration: int | None = None


class WebhookResult(BaseModel):
    event_type: str
    call_sid: str | None = None
    status: str  # "processed" | "ignored"
    message: str | None = None
    processing: ProcessingResult | None = None


class WebhookAck(BaseModel):
    success: bool = True
    received: str
    job_id: str | None = None


class JobStatusResponse(BaseModel):
    job_id: str
    status: str
    task_type: str
    created_at: datetime
    finished_at: datetime | None = None
    call_sid: str | None = None
    result: WebhookResult | None = None
    error: str | None = None
