import logging

from survey_bot.schemas.elevenlabs import ConversationResponse
from survey_bot.schemas.responses import WebhookResult
from survey_bot.schemas.supabase import CallStatus
from survey_bot.services.supabase import SupabaseService
from survey_bot.services.transcripts import TranscriptService

logger = logging.getLogger(__name__)

POST_CALL_TRANSCRIPTION = "post_call_transcription"
CALL_INITIATION_FAILURE = "call_initiation_failure"
CONVERSATION_STARTED = "conversation_started"
CONVERSATION_ENDED = "conversation_ended"
USER_EVENTS = {"user_message", "user_speech"}
ASSISTANT_EVENTS = {"assistant_message", "assistant_speech"}

NO_ANSWER_REASONS = {"no-answer", "no_answer", "busy"}


def event_type(event: dict) -> str:
    return event.get("type") or event.get("event_type") or "unknown"


def extract_call_sid(event: dict, header_sid: str | None = None) -> str | None:
    """Find the vendor call id of a webhook event.

    Post-call events nest it under ``data``. Initiation failures may nest it
    there too; otherwise it comes from the ``x-call-sid`` header or the top
    level of the body.
    """
    data = event.get("data") or {}
    phone_call = (data.get("metadata") or {}).get("phone_call") or {}
    if event_type(event) == POST_CALL_TRANSCRIPTION:
        return (
            data.get("conversation_id")
            or phone_call.get("call_sid")
            or event.get("conversation_id")
        )

    nested = None
    if event_type(event) == CALL_INITIATION_FAILURE:
        nested = data.get("conversation_id") or phone_call.get("call_sid")
    return (
        nested
        or header_sid
        or event.get("call_sid")
        or event.get("conversation_id")
        or event.get("call_id")
    )


def _message_text(event: dict) -> str:
    message = event.get("message") or {}
    if isinstance(message, dict) and message.get("content"):
        return message["content"]
    return event.get("text") or ""


class WebhookService:
    def __init__(self, supabase: SupabaseService, transcripts: TranscriptService):
        self._supabase = supabase
        self._transcripts = transcripts

    async def handle(self, event: dict, call_sid: str | None) -> WebhookResult:
        kind = event_type(event)

        if kind == POST_CALL_TRANSCRIPTION:
            return await self._post_call(event, call_sid)
        if kind == CALL_INITIATION_FAILURE:
            return await self._initiation_failure(event, call_sid)
        if kind == CONVERSATION_STARTED:
            return await self._set_status(kind, call_sid, CallStatus.in_progress)
        if kind == CONVERSATION_ENDED:
            return await self._set_status(kind, call_sid, CallStatus.completed)
        if kind in USER_EVENTS:
            return await self._user_message(event, call_sid)
        if kind in ASSISTANT_EVENTS:
            logger.info("Assistant message on %s: %s", call_sid, _message_text(event))
            return WebhookResult(event_type=kind, call_sid=call_sid, status="processed")

        logger.info("Ignoring webhook event type %s", kind)
        return WebhookResult(
            event_type=kind, call_sid=call_sid, status="ignored", message="Unhandled event type"
        )

    async def _post_call(self, event: dict, call_sid: str | None) -> WebhookResult:
        kind = POST_CALL_TRANSCRIPTION
        data = event.get("data") or {}
        conversation = ConversationResponse(**data)
        lookup_sid = conversation.conversation_id or call_sid
        if not lookup_sid:
            return WebhookResult(
                event_type=kind, status="ignored", message="No conversation id in payload"
            )

        call = await self._supabase.get_call_by_sid(lookup_sid)
        if call is None:
            logger.warning("Call not found for conversation %s", lookup_sid)
            return WebhookResult(
                event_type=kind, call_sid=lookup_sid, status="ignored", message="Call not found"
            )

        if not conversation.conversation_id:
            conversation.conversation_id = lookup_sid
        result = await self._transcripts.process_conversation(call, conversation)
        return WebhookResult(
            event_type=kind, call_sid=lookup_sid, status="processed", processing=result
        )

    async def _initiation_failure(self, event: dict, call_sid: str | None) -> WebhookResult:
        reason = ((event.get("data") or {}).get("failure_reason") or "").lower()
        status = CallStatus.no_answer if reason in NO_ANSWER_REASONS else CallStatus.failed
        logger.info("Call %s failed to connect (reason=%s)", call_sid, reason or "unknown")
        return await self._set_status(CALL_INITIATION_FAILURE, call_sid, status)

    async def _set_status(
        self, kind: str, call_sid: str | None, status: CallStatus
    ) -> WebhookResult:
        if not call_sid:
            return WebhookResult(event_type=kind, status="ignored", message="No call sid")

        updated = await self._supabase.update_call_status(call_sid, status)
        if updated is None:
            return WebhookResult(
                event_type=kind, call_sid=call_sid, status="ignored", message="Call not found"
            )
        return WebhookResult(
            event_type=kind, call_sid=call_sid, status="processed", message=f"Call {status}"
        )

    async def _user_message(self, event: dict, call_sid: str | None) -> WebhookResult:
        kind = event_type(event)
        text = _message_text(event)
        logger.info("User message on %s: %s", call_sid, text)
        if not call_sid:
            return WebhookResult(event_type=kind, status="ignored", message="No call sid")

        call = await self._supabase.get_call_by_sid(call_sid)
        if call is None:
            logger.warning("Call not found for sid %s", call_sid)
            return WebhookResult(
                event_type=kind, call_sid=call_sid, status="ignored", message="Call not found"
            )

        response = await self._transcripts.record_user_message(call, text)
        return WebhookResult(
            event_type=kind,
            call_sid=call_sid,
            status="processed",
            message=f"Saved answer to question {response.question_number}",
        )
