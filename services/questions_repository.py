"""Question CRUD with cache invalidation on every write."""
import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from services.shared.cache import CacheKeys, invalidate_question_caches
from services.shared.cached_repository import CachedRepository
from services.shared.records import AnswerRecord, QuestionRecord
from services.shared.results import QueryResult

logger = logging.getLogger(__name__)


class QuestionsRepository(CachedRepository):
    """Reads go through the cache; writes hit the store, then invalidate.

    Writes raise ``EntityValidationError`` for out-of-bounds input and
    ``QuestionNotFoundError`` for answers to a missing question. Store
    failures are logged and returned as a failed result, and leave the cache
    untouched.
    """

    def get_by_id(self, question_id: int) -> QueryResult[Optional[QuestionRecord]]:
        """Question with its answers, or a ``None`` value when absent."""
        key = CacheKeys.question(question_id)
        found, cached = self.cache.get(key)
        if found:
            logger.debug(f"Returning cached question {question_id}")
            return QueryResult.success(cached, cached=True)

        try:
            question = self.store.get_question(question_id)
        except Exception as e:
            logger.error(f"Error getting question {question_id}: {e}")
            return QueryResult.failure(None, str(e))

        # Absence is not cached, so a question created later is seen at once
        if question is not None:
            self.cache.set(key, question, self.policies.entity)
        return QueryResult.success(question)

    def get_all(self) -> QueryResult[List[QuestionRecord]]:
        return self._read_through(
            CacheKeys.QUESTIONS_LIST_ALL, self.policies.bulk,
            lambda: self.store.query_questions(include_answers=True),
            [], "questions list",
        )

    def add_question(self, question: QuestionRecord) -> QueryResult[Optional[QuestionRecord]]:
        try:
            created = self.store.insert_question(question)
        except SQLAlchemyError as e:
            logger.error(f"Error adding question: {e}")
            return QueryResult.failure(None, str(e))

        invalidate_question_caches(self.cache)
        return QueryResult.success(created)

    def add_answer(self, answer: AnswerRecord) -> QueryResult[Optional[AnswerRecord]]:
        try:
            created = self.store.insert_answer(answer)
        except SQLAlchemyError as e:
            logger.error(f"Error adding answer to question {answer.question_id}: {e}")
            return QueryResult.failure(None, str(e))

        invalidate_question_caches(self.cache, answer.question_id)
        return QueryResult.success(created)

    def update_question(self, question: QuestionRecord) -> QueryResult[Optional[QuestionRecord]]:
        """Persist new title and content; ``None`` value when the question is gone."""
        try:
            updated = self.store.update_question(question)
        except SQLAlchemyError as e:
            logger.error(f"Error updating question {question.id}: {e}")
            return QueryResult.failure(None, str(e))

        invalidate_question_caches(self.cache, question.id)
        return QueryResult.success(updated)

    def delete_question(self, question_id: int) -> QueryResult[bool]:
        """Delete a question and its answers; ``False`` when it did not exist."""
        try:
            deleted = self.store.delete_question(question_id)
        except SQLAlchemyError as e:
            logger.error(f"Error deleting question {question_id}: {e}")
            return QueryResult.failure(False, str(e))

        if deleted:
            invalidate_question_caches(self.cache, question_id)
        return QueryResult.success(deleted)
