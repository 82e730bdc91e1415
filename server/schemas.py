"""Request and response models for the FAQ API."""
from typing import Any, Dict, List

from pydantic import BaseModel, Field

from services.shared.models import CONTENT_MAX_LENGTH, TITLE_MAX_LENGTH


class QuestionCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    content: str = Field(..., min_length=1, max_length=CONTENT_MAX_LENGTH)


class AnswerCreateRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=CONTENT_MAX_LENGTH)


class AnswerResponse(BaseModel):
    id: int
    question_id: int
    content: str
    created_by: str
    created_at: str


class QuestionResponse(BaseModel):
    id: int
    title: str
    content: str
    created_by: str
    created_at: str
    answers: List[AnswerResponse] = []


class SummaryRequest(BaseModel):
    question_title: str = ""
    question_content: str = ""
    answers: List[str] = []


class SummaryResponse(BaseModel):
    summary: str
    source: str


class AskRequest(BaseModel):
    query: str = Field(..., min_length=1)


class AskResponse(BaseModel):
    response: str
    related_question_ids: List[int] = []
    source: str = "Rule-Based"


class AnalysisResponse(BaseModel):
    insights: str
    statistics: Dict[str, Any]
    popular_categories: List[str] = []
    generated_at: str
