from typing import Annotated

from fastapi import Depends, Request

from survey_bot.config import Settings
from survey_bot.jobs import JobStore
from survey_bot.services.calls import CallService
from survey_bot.services.elevenlabs import ElevenLabsService
from survey_bot.services.supabase import SupabaseService
from survey_bot.services.webhook import WebhookService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_supabase_service(request: Request) -> SupabaseService:
    return request.app.state.supabase_service


def get_elevenlabs_service(request: Request) -> ElevenLabsService | None:
    return getattr(request.app.state, "elevenlabs_service", None)


def get_call_service(request: Request) -> CallService | None:
    return getattr(request.app.state, "call_service", None)


def get_webhook_service(request: Request) -> WebhookService:
    return request.app.state.webhook_service


def get_job_store(request: Request) -> JobStore:
    return request.app.state.job_store


SettingsDep = Annotated[Settings, Depends(get_settings)]
SupabaseDep = Annotated[SupabaseService, Depends(get_supabase_service)]
ElevenLabsDep = Annotated[ElevenLabsService | None, Depends(get_elevenlabs_service)]
CallServiceDep = Annotated[CallService | None, Depends(get_call_service)]
WebhookDep = Annotated[WebhookService, Depends(get_webhook_service)]
JobStoreDep = Annotated[JobStore, Depends(get_job_store)]
