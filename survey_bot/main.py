import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from survey_bot.config import Settings
from survey_bot.exceptions.custom import ElevenLabsError, RateLimitError, SupabaseError
from survey_bot.exceptions.handlers import (
    elevenlabs_error_handler,
    rate_limit_error_handler,
    supabase_error_handler,
)
from survey_bot.jobs import JobStore
from survey_bot.routers.calls import router as calls_router
from survey_bot.routers.customers import router as customers_router
from survey_bot.routers.reports import router as reports_router
from survey_bot.routers.webhook import router as webhook_router
from survey_bot.services.calls import CallService
from survey_bot.services.elevenlabs import ElevenLabsService
from survey_bot.services.supabase import SupabaseService
from survey_bot.services.transcripts import TranscriptService
from survey_bot.services.webhook import WebhookService

logger = logging.getLogger(__name__)


def _flag(value: str) -> str:
    return "set" if value else "not set"


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logger.info(
        "ElevenLabs api key %s, agent id %s, phone number id %s, webhook secret %s",
        _flag(settings.elevenlabs_api_key),
        _flag(settings.elevenlabs_agent_id),
        _flag(settings.elevenlabs_agent_phone_number_id),
        _flag(settings.elevenlabs_webhook_secret),
    )
    logger.info("Webhook URL: %s/webhook/elevenlabs/conversation", settings.webhook_base_url)

    async with httpx.AsyncClient(timeout=30.0) as client:
        supabase = SupabaseService(client, settings.supabase_url, settings.supabase_service_key)
        transcripts = TranscriptService(supabase)

        app.state.settings = settings
        app.state.supabase_service = supabase
        app.state.webhook_service = WebhookService(supabase, transcripts)
        app.state.job_store = JobStore()

        # ElevenLabs is optional; call endpoints answer 503 without it
        if settings.elevenlabs_api_key and settings.elevenlabs_agent_id:
            elevenlabs = ElevenLabsService(
                client,
                settings.elevenlabs_api_key,
                settings.elevenlabs_agent_id,
                settings.elevenlabs_agent_phone_number_id,
            )
            app.state.elevenlabs_service = elevenlabs
            app.state.call_service = CallService(
                supabase,
                elevenlabs,
                transcripts,
                batch_delay=settings.batch_delay_seconds,
            )
        else:
            app.state.elevenlabs_service = None
            app.state.call_service = None

        yield


app = FastAPI(title="Voice Survey Bot", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(SupabaseError, supabase_error_handler)
app.add_exception_handler(ElevenLabsError, elevenlabs_error_handler)
app.add_exception_handler(RateLimitError, rate_limit_error_handler)

app.include_router(customers_router)
app.include_router(calls_router)
app.include_router(reports_router)
app.include_router(webhook_router)


@app.get("/health")
async def health() -> dict:
    return {"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat()}
