import logging
import math
import uuid
from datetime import datetime, timezone

import httpx

from survey_bot.exceptions.custom import RateLimitError, SupabaseError
from survey_bot.schemas.supabase import (
    CallStatus,
    CallSummary,
    CallTranscript,
    Customer,
    SurveyCall,
    SurveyResponse,
)

logger = logging.getLogger(__name__)

CUSTOMERS_TABLE = "customers"
CALLS_TABLE = "survey_calls"
RESPONSES_TABLE = "survey_responses"
TRANSCRIPTS_TABLE = "call_transcripts"


def _eq(value: str) -> str:
    return f"eq.{value}"


def _in(values: list[str]) -> str:
    return f"in.({','.join(values)})"


def _round_half_up(value: float, digits: int = 0) -> float:
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


class SupabaseService:
    """Table access through the Supabase PostgREST endpoint."""

    def __init__(self, client: httpx.AsyncClient, url: str, service_key: str):
        self._client = client
        self._rest_url = f"{url.rstrip('/')}/rest/v1"
        self._headers = {
            "apikey": service_key,
            "Authorization": f"Bearer {service_key}",
            "Content-Type": "application/json",
        }

    def table_url(self, table: str) -> str:
        return f"{self._rest_url}/{table}"

    @staticmethod
    def _check(resp: httpx.Response) -> None:
        if resp.status_code == 429:
            raise RateLimitError("Supabase")
        if resp.status_code >= 400:
            raise SupabaseError(resp.text, status_code=resp.status_code)

    async def _select(self, table: str, params: dict[str, str]) -> list[dict]:
        resp = await self._client.get(
            self.table_url(table), params=params, headers=self._headers
        )
        self._check(resp)
        return resp.json()

    async def _insert(self, table: str, rows: list[dict]) -> list[dict]:
        resp = await self._client.post(
            self.table_url(table),
            json=rows,
            headers={**self._headers, "Prefer": "return=representation"},
        )
        self._check(resp)
        return resp.json()

    async def _update(self, table: str, filters: dict[str, str], values: dict) -> list[dict]:
        resp = await self._client.patch(
            self.table_url(table),
            params=filters,
            json=values,
            headers={**self._headers, "Prefer": "return=representation"},
        )
        self._check(resp)
        return resp.json()

    async def _ids_for_call(self, table: str, call_id: str) -> list[str]:
        rows = await self._select(table, {"select": "id", "call_id": _eq(call_id)})
        return [r["id"] for r in rows]

    async def _delete(self, table: str, filters: dict[str, str]) -> None:
        resp = await self._client.delete(
            self.table_url(table), params=filters, headers=self._headers
        )
        self._check(resp)

    # Customers

    async def create_customer(self, customer: dict) -> Customer:
        rows = await self._insert(CUSTOMERS_TABLE, [customer])
        logger.info("Created customer %s", rows[0].get("id"))
        return Customer(**rows[0])

    async def get_customers(self) -> list[Customer]:
        rows = await self._select(
            CUSTOMERS_TABLE, {"select": "*", "order": "uploaded_at.desc"}
        )
        return [Customer(**r) for r in rows]

    async def get_customer_by_id(self, customer_id: str) -> Customer | None:
        if not _is_uuid(customer_id):
            return None
        rows = await self._select(
            CUSTOMERS_TABLE, {"select": "*", "id": _eq(customer_id)}
        )
        return Customer(**rows[0]) if rows else None

    # Calls

    async def create_call(self, call: dict) -> SurveyCall:
        rows = await self._insert(CALLS_TABLE, [call])
        logger.info("Created call %s (sid=%s)", rows[0].get("id"), rows[0].get("call_sid"))
        return SurveyCall(**rows[0])

    async def update_call_status(
        self,
        call_sid: str,
        status: CallStatus,
        duration: int | None = None,
    ) -> SurveyCall | None:
        values: dict = {
            "call_status": str(status),
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        if duration is not None:
            values["call_duration"] = duration

        rows = await self._update(CALLS_TABLE, {"call_sid": _eq(call_sid)}, values)
        if not rows:
            logger.warning("No call with sid %s to mark %s", call_sid, status)
            return None
        logger.info("Call %s is now %s", call_sid, status)
        return SurveyCall(**rows[0])

    async def get_call_by_id(self, call_id: str) -> SurveyCall | None:
        if not _is_uuid(call_id):
            return None
        rows = await self._select(CALLS_TABLE, {"select": "*", "id": _eq(call_id)})
        return SurveyCall(**rows[0]) if rows else None

    async def get_call_by_sid(self, call_sid: str) -> SurveyCall | None:
        rows = await self._select(
            CALLS_TABLE, {"select": "*", "call_sid": _eq(call_sid)}
        )
        return SurveyCall(**rows[0]) if rows else None

    async def get_calls(self) -> list[SurveyCall]:
        rows = await self._select(
            CALLS_TABLE, {"select": "*", "order": "created_at.desc"}
        )
        return [SurveyCall(**r) for r in rows]

    # Responses

    async def create_response(self, response: dict) -> SurveyResponse:
        rows = await self._insert(RESPONSES_TABLE, [response])
        return SurveyResponse(**rows[0])

    async def create_responses(self, responses: list[dict]) -> list[SurveyResponse]:
        if not responses:
            return []
        rows = await self._insert(RESPONSES_TABLE, responses)
        logger.info("Saved %d responses", len(rows))
        return [SurveyResponse(**r) for r in rows]

    async def get_responses_by_call_id(self, call_id: str) -> list[SurveyResponse]:
        rows = await self._select(
            RESPONSES_TABLE,
            {"select": "*", "call_id": _eq(call_id), "order": "question_number.asc"},
        )
        return [SurveyResponse(**r) for r in rows]

    async def get_all_responses(self) -> list[SurveyResponse]:
        rows = await self._select(
            RESPONSES_TABLE, {"select": "*", "order": "created_at.desc"}
        )
        return [SurveyResponse(**r) for r in rows]

    async def get_response_ids(self, call_id: str) -> list[str]:
        return await self._ids_for_call(RESPONSES_TABLE, call_id)

    async def delete_responses(self, response_ids: list[str]) -> None:
        if not response_ids:
            return
        await self._delete(RESPONSES_TABLE, {"id": _in(response_ids)})

    # Transcripts

    async def save_transcript(self, call_id: str, transcript: list[dict]) -> CallTranscript:
        rows = await self._insert(
            TRANSCRIPTS_TABLE, [{"call_id": call_id, "transcript": transcript}]
        )
        logger.info("Saved transcript with %d turns for call %s", len(transcript), call_id)
        return CallTranscript(**rows[0])

    async def get_transcript_by_call_id(self, call_id: str) -> CallTranscript | None:
        rows = await self._select(
            TRANSCRIPTS_TABLE,
            {"select": "*", "call_id": _eq(call_id), "order": "created_at.desc", "limit": "1"},
        )
        return CallTranscript(**rows[0]) if rows else None

    async def get_transcript_ids(self, call_id: str) -> list[str]:
        return await self._ids_for_call(TRANSCRIPTS_TABLE, call_id)

    async def delete_transcripts(self, transcript_ids: list[str]) -> None:
        if not transcript_ids:
            return
        await self._delete(TRANSCRIPTS_TABLE, {"id": _in(transcript_ids)})

    # Analytics

    async def get_call_summary(self) -> CallSummary:
        rows = await self._select(CALLS_TABLE, {"select": "call_status,call_duration"})

        total = len(rows)
        completed = [r for r in rows if r.get("call_status") == CallStatus.completed]
        failed = sum(1 for r in rows if r.get("call_status") == CallStatus.failed)
        no_answer = sum(1 for r in rows if r.get("call_status") == CallStatus.no_answer)

        completion_rate = len(completed) / total * 100 if total else 0.0
        # Completed calls without a duration still count in the denominator
        average_duration = (
            sum(r.get("call_duration") or 0 for r in completed) / len(completed)
            if completed
            else 0.0
        )

        return CallSummary(
            total_calls=total,
            completed_calls=len(completed),
            failed_calls=failed,
            no_answer_calls=no_answer,
            completion_rate=_round_half_up(completion_rate, 2),
            average_duration=int(_round_half_up(average_duration)),
        )
