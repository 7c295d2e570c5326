from pydantic import BaseModel, ConfigDict


class OutboundCallResponse(BaseModel):
    success: bool = False
    message: str | None = None
    conversation_id: str | None = None
    callSid: str | None = None


class ConversationTranscriptEntry(BaseModel):
    model_config = ConfigDict(extra="allow")

    role: str  # "agent" | "user"
    message: str | None = ""
    time_in_call_secs: float | None = None


class ConversationAnalysis(BaseModel):
    data_collection_results: dict = {}
    transcript_summary: str | None = None
    call_successful: str | None = None


class ConversationResponse(BaseModel):
    conversation_id: str = ""
    status: str = ""  # initiated | in-progress | processing | done | failed
    transcript: list[ConversationTranscriptEntry] = []
    analysis: ConversationAnalysis | None = None
    metadata: dict | None = None


class Voice(BaseModel):
    voice_id: str
    name: str | None = None
    category: str | None = None
    description: str | None = None
    preview_url: str | None = None


class VoicesResponse(BaseModel):
    voices: list[Voice] = []
