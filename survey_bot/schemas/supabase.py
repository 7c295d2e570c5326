from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel


class CallStatus(StrEnum):
    queued = "queued"
    in_progress = "in-progress"
    completed = "completed"
    failed = "failed"
    no_answer = "no-answer"


class Sentiment(StrEnum):
    positive = "positive"
    neutral = "neutral"
    negative = "negative"


class Customer(BaseModel):
    id: str
    first_name: str
    last_name: str | None = None
    phone_number: str
    company_name: str | None = None
    uploaded_at: datetime | None = None
    campaign_id: str | None = None


class SurveyCall(BaseModel):
    id: str
    customer_first_name: str
    customer_phone: str
    call_sid: str | None = None
    call_status: CallStatus
    call_duration: int | None = None
    customer_id: str | None = None
    campaign_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SurveyResponse(BaseModel):
    id: str
    call_id: str
    question_number: int
    question_text: str
    response_text: str
    response_sentiment: Sentiment | None = None
    response_timestamp: datetime | None = None
    is_followup: bool = False
    created_at: datetime | None = None


class CallTranscript(BaseModel):
    id: str
    call_id: str
    transcript: list[dict]
    created_at: datetime | None = None


class CallSummary(BaseModel):
    total_calls: int
    completed_calls: int
    failed_calls: int
    no_answer_calls: int
    completion_rate: float
    average_duration: int
