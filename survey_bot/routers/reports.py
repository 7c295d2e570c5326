from fastapi import APIRouter

from survey_bot.dependencies import SupabaseDep
from survey_bot.schemas.responses import QuestionSentiment
from survey_bot.schemas.supabase import CallSummary, SurveyResponse
from survey_bot.survey import QUESTIONS, question_text

router = APIRouter(prefix="/api/reports", tags=["reports"])


def summarize_sentiment(responses: list[SurveyResponse]) -> list[QuestionSentiment]:
    """Count sentiment labels per question; every survey question gets a row."""
    rows = {
        n: QuestionSentiment(question_number=n, question_text=question_text(n))
        for n in QUESTIONS
    }
    for response in responses:
        row = rows.setdefault(
            response.question_number,
            QuestionSentiment(
                question_number=response.question_number,
                question_text=question_text(response.question_number),
            ),
        )
        row.total += 1
        if response.response_sentiment is not None:
            label = str(response.response_sentiment)
            setattr(row, label, getattr(row, label) + 1)
    return [rows[n] for n in sorted(rows)]


@router.get("/summary", response_model=CallSummary)
async def get_summary(supabase: SupabaseDep) -> CallSummary:
    return await supabase.get_call_summary()


@router.get("/responses", response_model=list[SurveyResponse])
async def get_all_responses(supabase: SupabaseDep) -> list[SurveyResponse]:
    return await supabase.get_all_responses()


@router.get("/sentiment", response_model=list[QuestionSentiment])
async def get_sentiment(supabase: SupabaseDep) -> list[QuestionSentiment]:
    return summarize_sentiment(await supabase.get_all_responses())
