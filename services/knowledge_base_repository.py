"""Cached read queries backing the knowledge base analysis."""
import logging
from datetime import datetime
from typing import List, Sequence

from services.shared.cache import CacheKeys, invalidate_question_caches
from services.shared.cached_repository import CachedRepository
from services.shared.records import QuestionRecord
from services.shared.results import QueryResult

logger = logging.getLogger(__name__)


class KnowledgeBaseRepository(CachedRepository):
    """Read-only query surface over questions and answers.

    Bulk listings and plain counts use the bulk policy, search and category
    results the shorter search policy, and date range counts a fixed window.
    """

    def get_questions(self) -> QueryResult[List[QuestionRecord]]:
        """All questions, without answers."""
        return self._read_through(
            CacheKeys.QUESTIONS_ALL, self.policies.bulk,
            lambda: self.store.query_questions(include_answers=False),
            [], "questions",
        )

    def get_questions_with_answers(self) -> QueryResult[List[QuestionRecord]]:
        return self._read_through(
            CacheKeys.QUESTIONS_WITH_ANSWERS, self.policies.bulk,
            lambda: self.store.query_questions(include_answers=True),
            [], "questions with answers",
        )

    def get_unanswered_questions(self) -> QueryResult[List[QuestionRecord]]:
        return self._read_through(
            CacheKeys.QUESTIONS_UNANSWERED, self.policies.bulk,
            lambda: self.store.query_questions(answered=False),
            [], "unanswered questions",
        )

    def get_questions_by_search_terms(self, search_terms: Sequence[str]) -> QueryResult[List[QuestionRecord]]:
        """Questions whose title or content contains any of the terms.

        Terms are normalized (lower-cased, de-duplicated, sorted) so the same
        set of terms always maps to the same cache entry. An empty term list
        matches nothing and does not reach the store.
        """
        terms = CacheKeys.normalize_terms(search_terms)
        if not terms:
            return QueryResult.success([])
        return self._read_through(
            CacheKeys.search(terms), self.policies.search,
            lambda: self.store.query_questions(terms=terms),
            [], f"search results for {'_'.join(terms)}",
        )

    def get_questions_by_category(self, category: str) -> QueryResult[List[QuestionRecord]]:
        """Questions mentioning the category in title or content."""
        needle = (category or "").strip().lower()
        if not needle:
            return QueryResult.success([])
        return self._read_through(
            CacheKeys.category(needle), self.policies.search,
            lambda: self.store.query_questions(terms=[needle]),
            [], f"questions for category {category}",
        )

    def get_questions_count_by_category(self, category: str) -> QueryResult[int]:
        needle = (category or "").strip().lower()
        if not needle:
            return QueryResult.success(0)
        return self._read_through(
            CacheKeys.category_count(needle), self.policies.search,
            lambda: self.store.count_questions(terms=[needle]),
            0, f"questions count for category {category}",
        )

    def get_total_questions_count(self) -> QueryResult[int]:
        return self._read_through(
            CacheKeys.COUNT_TOTAL, self.policies.bulk,
            self.store.count_questions,
            0, "total questions count",
        )

    def get_answered_questions_count(self) -> QueryResult[int]:
        return self._read_through(
            CacheKeys.COUNT_ANSWERED, self.policies.bulk,
            lambda: self.store.count_questions(answered=True),
            0, "answered questions count",
        )

    def get_all_question_titles(self) -> QueryResult[List[str]]:
        return self._read_through(
            CacheKeys.TITLES_ALL, self.policies.bulk,
            self.store.question_titles,
            [], "question titles",
        )

    def get_all_question_contents(self) -> QueryResult[List[str]]:
        return self._read_through(
            CacheKeys.CONTENTS_ALL, self.policies.bulk,
            self.store.question_contents,
            [], "question contents",
        )

    def get_questions_count_by_date_range(self, start: datetime, end: datetime) -> QueryResult[int]:
        """Questions created in ``[start, end)``; an empty or inverted range counts 0."""
        if start >= end:
            return QueryResult.success(0)
        return self._read_through(
            CacheKeys.question_date_range(start, end), self.policies.date_range,
            lambda: self.store.count_questions_between(start, end),
            0, "questions count by date range",
        )

    def get_answers_count_by_date_range(self, start: datetime, end: datetime) -> QueryResult[int]:
        """Answers created in ``[start, end)``; an empty or inverted range counts 0."""
        if start >= end:
            return QueryResult.success(0)
        return self._read_through(
            CacheKeys.answer_date_range(start, end), self.policies.date_range,
            lambda: self.store.count_answers_between(start, end),
            0, "answers count by date range",
        )

    def invalidate_cache(self) -> None:
        """Drop every cached listing and count that question writes affect."""
        invalidate_question_caches(self.cache)
        logger.info("Cache invalidated for question data")
