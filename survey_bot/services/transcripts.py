import logging
from datetime import datetime, timezone

from survey_bot.mappers.classifier import analyze_sentiment, classify_transcript
from survey_bot.schemas.elevenlabs import ConversationResponse
from survey_bot.schemas.responses import ProcessingResult
from survey_bot.schemas.supabase import CallStatus, SurveyCall, SurveyResponse
from survey_bot.services.supabase import SupabaseService
from survey_bot.survey import DATA_COLLECTION_KEYS, question_text

logger = logging.getLogger(__name__)


def _call_start(conversation: ConversationResponse) -> float | None:
    if not conversation.metadata:
        return None
    start = conversation.metadata.get("start_time_unix_secs")
    try:
        return float(start) if start is not None else None
    except (TypeError, ValueError):
        return None


def _call_duration(conversation: ConversationResponse) -> int | None:
    if not conversation.metadata:
        return None
    duration = conversation.metadata.get("call_duration_secs")
    try:
        return int(float(duration)) if duration is not None else None
    except (TypeError, ValueError):
        return None


def _absolute_time(start: float | None, offset: float | None) -> str | None:
    if start is None or offset is None:
        return None
    return datetime.fromtimestamp(start + offset, tz=timezone.utc).isoformat()


def extract_data_collection(conversation: ConversationResponse) -> dict[int, str]:
    """Map ``q1``..``q5`` data collection entries to question number -> answer."""
    if not conversation.analysis:
        return {}

    answers: dict[int, str] = {}
    for key, entry in conversation.analysis.data_collection_results.items():
        number = DATA_COLLECTION_KEYS.get(key.lower())
        if number is None:
            continue
        # {"q1": {"value": "...", "rationale": "..."}} or a bare value
        value = entry.get("value") if isinstance(entry, dict) else entry
        if value is None or value == "":
            continue
        answers[number] = str(value)
    return dict(sorted(answers.items()))


class TranscriptService:
    def __init__(self, supabase: SupabaseService):
        self._supabase = supabase

    async def process_conversation(
        self, call: SurveyCall, conversation: ConversationResponse
    ) -> ProcessingResult:
        """Store the transcript and survey answers of a finished conversation.

        Earlier responses and transcripts of the call are replaced, so a
        redelivered webhook or a manual sync does not duplicate rows. The old
        rows are removed only after the new ones are written.
        """
        call_sid = call.call_sid or conversation.conversation_id

        old_responses = await self._supabase.get_response_ids(call.id)
        old_transcripts = await self._supabase.get_transcript_ids(call.id)

        await self._supabase.save_transcript(
            call.id, [entry.model_dump() for entry in conversation.transcript]
        )

        rows: list[dict] = []
        answers = extract_data_collection(conversation)
        if answers:
            source = "data_collection"
            for number, text in answers.items():
                logger.info("Saving Q%d from data collection for call %s", number, call.id)
                rows.append({
                    "call_id": call.id,
                    "question_number": number,
                    "question_text": question_text(number),
                    "response_text": text,
                    "response_sentiment": str(analyze_sentiment(text)),
                    "is_followup": False,
                })
        else:
            source = "transcript"
            start = _call_start(conversation)
            for classified in classify_transcript(conversation.transcript):
                rows.append({
                    "call_id": call.id,
                    "question_number": classified.question_number,
                    "question_text": question_text(classified.question_number),
                    "response_text": classified.response_text,
                    "response_sentiment": str(analyze_sentiment(classified.response_text)),
                    "response_timestamp": _absolute_time(start, classified.time_in_call_secs),
                    "is_followup": classified.is_followup,
                })

        saved = await self._supabase.create_responses(rows)
        await self._supabase.delete_responses(old_responses)
        await self._supabase.delete_transcripts(old_transcripts)

        duration = _call_duration(conversation)
        await self._supabase.update_call_status(call_sid, CallStatus.completed, duration)

        logger.info(
            "Processed conversation %s for call %s: %d responses from %s",
            conversation.conversation_id,
            call.id,
            len(saved),
            source,
        )
        return ProcessingResult(
            call_id=call.id,
            conversation_id=conversation.conversation_id or call_sid,
            source=source,
            responses_saved=len(saved),
            call_status=CallStatus.completed,
            call_duration=duration,
        )

    async def record_user_message(self, call: SurveyCall, text: str) -> SurveyResponse:
        """Store a live user utterance as the answer to the next unanswered question."""
        existing = await self._supabase.get_responses_by_call_id(call.id)
        number = len(existing) + 1
        return await self._supabase.create_response({
            "call_id": call.id,
            "question_number": number,
            "question_text": question_text(number),
            "response_text": text,
            "response_sentiment": str(analyze_sentiment(text)),
        })
