import hashlib
import hmac
import logging
import time

import httpx

from survey_bot.exceptions.custom import ElevenLabsError, RateLimitError
from survey_bot.schemas.elevenlabs import (
    ConversationResponse,
    OutboundCallResponse,
    VoicesResponse,
)

logger = logging.getLogger(__name__)

OUTBOUND_CALL_URL = "https://api.elevenlabs.io/v1/convai/twilio/outbound-call"
CONVERSATIONS_URL = "https://api.elevenlabs.io/v1/convai/conversations"
VOICES_URL = "https://api.elevenlabs.io/v1/voices"
TEXT_TO_SPEECH_URL = "https://api.elevenlabs.io/v1/text-to-speech"

TTS_MODEL = "eleven_turbo_v2_5"
SIGNATURE_TOLERANCE_SECS = 30 * 60


def verify_webhook_signature(
    payload: bytes,
    header: str | None,
    secret: str,
    now: float | None = None,
) -> bool:
    """Check an ``ElevenLabs-Signature: t=<ts>,v0=<hex>`` header.

    The digest is HMAC-SHA256 over ``"<ts>.<raw body>"``; timestamps older
    than the tolerance window are rejected.
    """
    if not header:
        return False

    parts = dict(
        item.split("=", 1) for item in header.split(",") if "=" in item
    )
    timestamp = parts.get("t", "")
    signature = parts.get("v0", "")
    if not timestamp.isdigit() or not signature:
        return False

    current = time.time() if now is None else now
    if int(timestamp) < current - SIGNATURE_TOLERANCE_SECS:
        return False

    message = f"{timestamp}.".encode() + payload
    expected = hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


class ElevenLabsService:
    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        agent_id: str,
        phone_number_id: str,
    ):
        self._client = client
        self._headers = {"xi-api-key": api_key}
        self._agent_id = agent_id
        self._phone_number_id = phone_number_id

    @property
    def agent_id(self) -> str:
        return self._agent_id

    @staticmethod
    def _check(resp: httpx.Response) -> None:
        if resp.status_code == 429:
            raise RateLimitError("ElevenLabs")
        if resp.status_code >= 400:
            raise ElevenLabsError(resp.text, status_code=resp.status_code)

    async def initiate_call(
        self,
        to_number: str,
        first_name: str,
        dynamic_variables: dict | None = None,
    ) -> str:
        """Place an outbound Twilio call through the agent; returns the conversation id."""
        if not self._phone_number_id:
            raise ElevenLabsError(
                "ELEVENLABS_AGENT_PHONE_NUMBER_ID is required for Twilio outbound calls"
            )

        variables: dict = {"customer_name": first_name or ""}
        if dynamic_variables:
            variables.update(dynamic_variables)

        payload = {
            "agent_id": self._agent_id,
            "agent_phone_number_id": self._phone_number_id,
            "to_number": to_number,
            "conversation_initiation_client_data": {
                "dynamic_variables": variables,
            },
        }

        logger.info("Starting outbound call to %s", to_number)
        resp = await self._client.post(
            OUTBOUND_CALL_URL, json=payload, headers=self._headers
        )
        self._check(resp)

        call = OutboundCallResponse(**resp.json())
        conversation_id = call.conversation_id or call.callSid
        if not conversation_id:
            raise ElevenLabsError(call.message or "Call not started")

        logger.info("Outbound call started: conversation_id=%s", conversation_id)
        return conversation_id

    async def get_conversation(
        self, conversation_id: str
    ) -> ConversationResponse:
        url = f"{CONVERSATIONS_URL}/{conversation_id}"
        resp = await self._client.get(url, headers=self._headers)
        self._check(resp)

        conversation = ConversationResponse(**resp.json())
        logger.info(
            "Fetched conversation %s (status=%s, %d turns)",
            conversation_id,
            conversation.status,
            len(conversation.transcript),
        )
        return conversation

    async def get_voices(self) -> VoicesResponse:
        resp = await self._client.get(VOICES_URL, headers=self._headers)
        self._check(resp)
        return VoicesResponse(**resp.json())

    async def text_to_speech(self, voice_id: str, text: str) -> bytes:
        url = f"{TEXT_TO_SPEECH_URL}/{voice_id}"
        logger.info("Converting %d characters to speech with voice %s", len(text), voice_id)
        resp = await self._client.post(
            url,
            json={"text": text, "model_id": TTS_MODEL},
            headers={**self._headers, "Accept": "audio/mpeg"},
        )
        self._check(resp)
        return resp.content
