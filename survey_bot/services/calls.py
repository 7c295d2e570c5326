import asyncio
import logging

import httpx

from survey_bot.schemas.responses import BatchCallResponse, BatchCallResult, ProcessingResult
from survey_bot.schemas.supabase import CallStatus, Customer, SurveyCall
from survey_bot.services.elevenlabs import ElevenLabsService
from survey_bot.services.supabase import SupabaseService
from survey_bot.services.transcripts import TranscriptService

logger = logging.getLogger(__name__)


def _describe_error(exc: Exception) -> str:
    """Return a human-readable description for common call exceptions."""
    if isinstance(exc, httpx.ReadTimeout):
        return "Timed out waiting for response (ReadTimeout)"
    if isinstance(exc, httpx.ConnectTimeout):
        return "Could not connect to server (ConnectTimeout)"
    if isinstance(exc, httpx.ConnectError):
        return "Connection error"
    text = str(exc).strip()
    if text:
        return text
    return type(exc).__name__


def chunked(items: list, size: int) -> list[list]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class CallService:
    def __init__(
        self,
        supabase: SupabaseService,
        elevenlabs: ElevenLabsService,
        transcripts: TranscriptService,
        batch_delay: float = 1.0,
    ):
        self._supabase = supabase
        self._elevenlabs = elevenlabs
        self._transcripts = transcripts
        self._batch_delay = batch_delay

    async def place_call(
        self,
        first_name: str,
        phone_number: str,
        customer: Customer | None = None,
    ) -> SurveyCall:
        """Dial through ElevenLabs, then record the call as queued under its conversation id."""
        conversation_id = await self._elevenlabs.initiate_call(phone_number, first_name)

        record: dict = {
            "customer_first_name": first_name,
            "customer_phone": phone_number,
            "call_sid": conversation_id,
            "call_status": str(CallStatus.queued),
        }
        if customer is not None:
            record["customer_id"] = customer.id
            record["campaign_id"] = customer.campaign_id

        return await self._supabase.create_call(record)

    async def _call_customer(self, customer_id: str) -> BatchCallResult:
        try:
            customer = await self._supabase.get_customer_by_id(customer_id)
            if customer is None:
                return BatchCallResult(
                    customer_id=customer_id,
                    error=f"Customer {customer_id} not found",
                )
            call = await self.place_call(customer.first_name, customer.phone_number, customer)
            return BatchCallResult(
                customer_id=customer_id,
                call_id=call.id,
                call_sid=call.call_sid,
                status=call.call_status,
            )
        except Exception as exc:
            logger.warning("Call to customer %s failed: %s: %s", customer_id, type(exc).__name__, exc)
            return BatchCallResult(customer_id=customer_id, error=_describe_error(exc))

    async def start_batch(
        self, customer_ids: list[str], max_concurrent: int
    ) -> BatchCallResponse:
        results: list[BatchCallResult] = []
        groups = chunked(customer_ids, max_concurrent)

        for index, group in enumerate(groups):
            logger.info(
                "Batch group %d/%d: calling %d customers",
                index + 1,
                len(groups),
                len(group),
            )
            results.extend(
                await asyncio.gather(*(self._call_customer(cid) for cid in group))
            )
            # Pause between groups to stay under the vendor's rate limit
            if index < len(groups) - 1:
                await asyncio.sleep(self._batch_delay)

        failed = sum(1 for r in results if r.error)
        logger.info("Batch finished: %d calls, %d failed", len(results), failed)
        return BatchCallResponse(
            total=len(customer_ids),
            successful=len(results) - failed,
            failed=failed,
            results=results,
        )

    async def sync_call(self, call: SurveyCall) -> ProcessingResult:
        """Pull the finished conversation from ElevenLabs and store its responses."""
        conversation = await self._elevenlabs.get_conversation(call.call_sid)
        return await self._transcripts.process_conversation(call, conversation)
