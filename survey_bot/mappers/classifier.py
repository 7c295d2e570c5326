from pydantic import BaseModel

from survey_bot.schemas.elevenlabs import ConversationTranscriptEntry
from survey_bot.schemas.supabase import Sentiment

AGENT_ROLES = {"agent", "assistant"}
USER_ROLES = {"user"}

FOLLOW_UP_PATTERNS = [
    "how important",
    "how could we improve",
    "what actions show",
    "what actions don't",
    "what actions show safe",
    "what actions don't meet",
]

POSITIVE_WORDS = ["good", "great", "excellent", "satisfied", "happy", "pleased", "love", "amazing"]
NEGATIVE_WORDS = ["bad", "terrible", "awful", "disappointed", "unhappy", "hate", "worst", "poor"]


class ClassifiedResponse(BaseModel):
    question_number: int
    response_text: str
    is_followup: bool = False
    time_in_call_secs: float | None = None


def _contains_any(text: str, patterns: list[str]) -> bool:
    return any(p in text for p in patterns)


def detect_question(text: str) -> int | None:
    """Guess which survey question an agent utterance asks.

    Triggers are checked in order 1 to 5; questions 3 and 4 are skipped when
    the utterance is really one of their follow-ups. Returns None for
    follow-ups and anything unrecognised.
    """
    lower = text.lower()

    if _contains_any(lower, ["how long have you been using", "how long have you been"]):
        return 1

    if _contains_any(lower, ["main reason", "reason you continue"]) and _contains_any(
        lower, ["continue", "work with us"]
    ):
        return 2

    if "meeting expectations" in lower and not _contains_any(
        lower, ["how important", "how could we improve"]
    ):
        return 3

    if "safety expectations" in lower and not _contains_any(
        lower, ["what actions show", "what actions don't"]
    ):
        return 4

    if _contains_any(lower, ["anything else", "anything about your business"]):
        return 5

    return None


def is_follow_up(text: str) -> bool:
    return _contains_any(text.lower(), FOLLOW_UP_PATTERNS)


def analyze_sentiment(text: str) -> Sentiment:
    lower = text.lower()
    positive = sum(1 for word in POSITIVE_WORDS if word in lower)
    negative = sum(1 for word in NEGATIVE_WORDS if word in lower)

    if positive > negative:
        return Sentiment.positive
    if negative > positive:
        return Sentiment.negative
    return Sentiment.neutral


def classify_transcript(
    transcript: list[ConversationTranscriptEntry],
) -> list[ClassifiedResponse]:
    """Attribute user turns to the survey question the agent last asked.

    Consecutive user turns answering the same question (and follow-up) are
    merged into one response. User turns with no open question are dropped.
    """
    responses: list[ClassifiedResponse] = []
    current: int | None = None
    followup = False
    pending: ClassifiedResponse | None = None

    for entry in transcript:
        text = (entry.message or "").strip()
        if not text:
            continue

        if entry.role in AGENT_ROLES:
            if pending:
                responses.append(pending)
                pending = None

            detected = detect_question(text)
            if detected is not None:
                current, followup = detected, False
            elif current is not None and is_follow_up(text):
                followup = True
            else:
                current, followup = None, False

        elif entry.role in USER_ROLES:
            if current is None:
                continue
            if pending:
                pending.response_text = f"{pending.response_text} {text}"
            else:
                pending = ClassifiedResponse(
                    question_number=current,
                    response_text=text,
                    is_followup=followup,
                    time_in_call_secs=entry.time_in_call_secs,
                )

    if pending:
        responses.append(pending)

    return responses
