import asyncio
import json
import logging

from fastapi import APIRouter, HTTPException, Request

from survey_bot.dependencies import JobStoreDep, SettingsDep, WebhookDep
from survey_bot.jobs import JobStore
from survey_bot.schemas.responses import JobStatusResponse, WebhookAck
from survey_bot.services.elevenlabs import verify_webhook_signature
from survey_bot.services.webhook import WebhookService, event_type, extract_call_sid

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])

SIGNATURE_HEADER = "elevenlabs-signature"

# Strong references so in-flight jobs are not garbage collected
_background_tasks: set[asyncio.Task] = set()


async def _run_webhook(
    job_id: str,
    service: WebhookService,
    store: JobStore,
    event: dict,
    call_sid: str | None,
) -> None:
    store.mark_running(job_id)
    try:
        result = await service.handle(event, call_sid)
        store.mark_completed(job_id, result)
    except Exception as exc:
        logger.exception("Webhook job %s failed", job_id)
        store.mark_failed(job_id, str(exc))


@router.post("/webhook/elevenlabs/conversation", response_model=WebhookAck)
async def elevenlabs_conversation(
    request: Request,
    service: WebhookDep,
    store: JobStoreDep,
    settings: SettingsDep,
) -> WebhookAck:
    body = await request.body()

    if settings.elevenlabs_webhook_secret and not verify_webhook_signature(
        body, request.headers.get(SIGNATURE_HEADER), settings.elevenlabs_webhook_secret
    ):
        logger.warning("Rejected webhook with invalid signature")
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    try:
        event = json.loads(body or b"{}")
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Invalid JSON payload")
    if not isinstance(event, dict):
        raise HTTPException(status_code=400, detail="Webhook payload must be an object")

    kind = event_type(event)
    call_sid = extract_call_sid(event, request.headers.get("x-call-sid"))
    logger.info("ElevenLabs webhook received: type=%s call_sid=%s", kind, call_sid)

    job = store.create_job(task_type=kind, call_sid=call_sid)
    task = asyncio.create_task(_run_webhook(job.job_id, service, store, event, call_sid))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return WebhookAck(received=kind, job_id=job.job_id)


@router.get("/webhook/elevenlabs/conversation")
async def elevenlabs_conversation_ready() -> dict:
    return {"status": "webhook_endpoint_ready"}


@router.get("/jobs/{job_id}", response_model=JobStatusResponse)
async def get_job_status(job_id: str, store: JobStoreDep) -> JobStatusResponse:
    job = store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobStatusResponse(**job.model_dump())
