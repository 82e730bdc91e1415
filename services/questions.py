"""Question and answer use cases for the HTTP boundary."""
from dataclasses import replace
from typing import Any, Dict, List, Optional

from observability.logging import get_structured_logger
from services.questions_repository import QuestionsRepository
from services.shared.clock import Clock, SystemClock
from services.shared.errors import StoreUnavailableError
from services.shared.records import AnswerRecord, QuestionRecord
from services.shared.results import QueryResult

audit = get_structured_logger(__name__, component="questions")


def _unwrap_write(result: QueryResult, action: str):
    if not result.ok:
        raise StoreUnavailableError(f"Could not {action}: {result.error}")
    return result.value


class QuestionsService:
    """Builds records from user input and hands them to the repository.

    Reads return plain dicts. Writes stamp ``created_at`` from the clock and
    raise ``StoreUnavailableError`` when the store rejected the commit, so the
    boundary can tell a failed write from a successful one.
    """

    def __init__(self, repository: QuestionsRepository, clock: Optional[Clock] = None):
        self.repository = repository
        self.clock = clock or SystemClock()

    def get_all(self) -> List[Dict[str, Any]]:
        return [q.to_dict() for q in self.repository.get_all().value]

    def get_by_id(self, question_id: int) -> Optional[Dict[str, Any]]:
        question = self.repository.get_by_id(question_id).value
        return question.to_dict() if question is not None else None

    def add_question(self, title: str, content: str, user_id: str) -> QuestionRecord:
        record = QuestionRecord(
            title=title,
            content=content,
            created_by=user_id,
            created_at=self.clock.now(),
        )
        created = _unwrap_write(self.repository.add_question(record), "add question")
        audit.info(f"Question {created.id} created", action="create_question", question_id=created.id, user=user_id)
        return created

    def add_answer(self, question_id: int, content: str, user_id: str) -> AnswerRecord:
        record = AnswerRecord(
            question_id=question_id,
            content=content,
            created_by=user_id,
            created_at=self.clock.now(),
        )
        created = _unwrap_write(self.repository.add_answer(record), "add answer")
        audit.info(f"Answer {created.id} added to question {question_id}", action="add_answer",
                   question_id=question_id, answer_id=created.id, user=user_id)
        return created

    def update_question(self, question_id: int, title: str, content: str) -> Optional[QuestionRecord]:
        """Replace title and content; ``None`` when the question does not exist."""
        existing = self.repository.get_by_id(question_id).value
        if existing is None:
            return None
        record = replace(existing, title=title, content=content, answers=())
        return _unwrap_write(self.repository.update_question(record), "update question")

    def delete_question(self, question_id: int) -> bool:
        """Delete a question and its answers; ``False`` when it does not exist."""
        deleted = _unwrap_write(self.repository.delete_question(question_id), "delete question")
        if deleted:
            audit.info(f"Question {question_id} deleted", action="delete_question", question_id=question_id)
        return deleted
