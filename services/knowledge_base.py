"""Knowledge base analysis: relevance lookup, categories and usage statistics."""
import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Any

from services.categories import extract_categories, score_question, split_query
from services.knowledge_base_repository import KnowledgeBaseRepository
from services.shared.clock import Clock, SystemClock
from services.shared.records import QuestionRecord

logger = logging.getLogger(__name__)

RELEVANT_LIMIT = 10
UNANSWERED_LIMIT = 20
CATEGORY_STATS_LIMIT = 10
ACTIVITY_WEEKS = 4


@dataclass
class QuestionActivity:
    """Questions and answers created in one week."""
    period: str
    start: datetime
    end: datetime
    questions_count: int = 0
    answers_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'period': self.period,
            'start': self.start.isoformat(),
            'end': self.end.isoformat(),
            'questions_count': self.questions_count,
            'answers_count': self.answers_count,
        }


@dataclass
class KnowledgeBaseAnalysis:
    total_questions: int = 0
    answered_questions: int = 0
    unanswered_questions: int = 0
    answer_rate: float = 0.0
    average_answers_per_question: float = 0.0
    popular_categories: List[str] = field(default_factory=list)
    category_stats: Dict[str, int] = field(default_factory=dict)
    recent_activity: List[QuestionActivity] = field(default_factory=list)
    suggested_categories: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['recent_activity'] = [a.to_dict() for a in self.recent_activity]
        return data


def answer_rate(answered: int, total: int) -> float:
    """Percentage of answered questions; 0 for an empty knowledge base."""
    if total <= 0:
        return 0.0
    return answered / total * 100


def average_answers(total_answers: int, answered: int) -> float:
    """Answers per answered question; 0 when nothing is answered."""
    if answered <= 0:
        return 0.0
    return total_answers / answered


def week_label(start: datetime, end: datetime) -> str:
    return f"{start:%b %d} - {end:%b %d}"


class KnowledgeBaseService:
    """Analysis operations for the manager assistant.

    Every public operation returns plain data and never raises: a failure is
    logged and degrades to an empty or zero result for that computation only.
    """

    def __init__(self, repository: KnowledgeBaseRepository, clock: Optional[Clock] = None):
        self.repository = repository
        self.clock = clock or SystemClock()

    def get_relevant_questions(self, query: Optional[str]) -> List[QuestionRecord]:
        """Up to 10 questions ranked by relevance to ``query``.

        A blank query returns the 10 most recently created questions.
        """
        try:
            if not query or not query.strip():
                questions = self.repository.get_questions_with_answers().value
                return sorted(questions, key=lambda q: q.created_at, reverse=True)[:RELEVANT_LIMIT]

            terms = split_query(query)
            candidates = self.repository.get_questions_by_search_terms(terms).value
            scored = [(score_question(q, terms), q) for q in candidates]
            # Stable sort: equal scores keep the candidate order
            scored.sort(key=lambda pair: pair[0], reverse=True)
            return [q for _, q in scored[:RELEVANT_LIMIT]]
        except Exception as e:
            logger.error(f"Error getting relevant questions for query {query!r}: {e}")
            return []

    def get_questions_by_category(self, category: str) -> List[QuestionRecord]:
        try:
            return self.repository.get_questions_by_category(category).value
        except Exception as e:
            logger.error(f"Error getting questions by category {category}: {e}")
            return []

    def extract_categories_from_questions(self) -> List[str]:
        try:
            return extract_categories(self.repository.get_questions().value)
        except Exception as e:
            logger.error(f"Error extracting categories from questions: {e}")
            return []

    def get_category_statistics(self) -> Dict[str, int]:
        """Question counts for the 10 most frequent categories."""
        try:
            categories = extract_categories(self.repository.get_questions().value)
            stats: Dict[str, int] = {}
            for category in categories[:CATEGORY_STATS_LIMIT]:
                stats[category] = self.repository.get_questions_count_by_category(category).value
            return stats
        except Exception as e:
            logger.error(f"Error getting category statistics: {e}")
            return {}

    def get_unanswered_questions(self) -> List[QuestionRecord]:
        """The 20 most recent unanswered questions."""
        try:
            questions = self.repository.get_unanswered_questions().value
            return sorted(questions, key=lambda q: q.created_at, reverse=True)[:UNANSWERED_LIMIT]
        except Exception as e:
            logger.error(f"Error getting unanswered questions: {e}")
            return []

    def get_answer_rate(self) -> float:
        try:
            total = self.repository.get_total_questions_count().value
            if total == 0:
                return 0.0
            answered = self.repository.get_answered_questions_count().value
            return answer_rate(answered, total)
        except Exception as e:
            logger.error(f"Error calculating answer rate: {e}")
            return 0.0

    def get_recent_activity(self, weeks: int = ACTIVITY_WEEKS) -> List[QuestionActivity]:
        """Trailing 7-day buckets ending now, oldest first.

        Bucket ``i`` covers ``[now - 7(i+1) days, now - 7i days)``, so a
        timestamp on a boundary belongs to the later bucket only.
        """
        try:
            now = self.clock.now()
            activity = []
            for i in range(weeks - 1, -1, -1):
                start = now - timedelta(days=7 * (i + 1))
                end = now - timedelta(days=7 * i)
                activity.append(QuestionActivity(
                    period=week_label(start, end),
                    start=start,
                    end=end,
                    questions_count=self.repository.get_questions_count_by_date_range(start, end).value,
                    answers_count=self.repository.get_answers_count_by_date_range(start, end).value,
                ))
            return activity
        except Exception as e:
            logger.error(f"Error getting recent activity: {e}")
            return []

    def analyze_knowledge_base(self, category: Optional[str] = None) -> KnowledgeBaseAnalysis:
        """Statistics over all questions, or those matching ``category``."""
        analysis = KnowledgeBaseAnalysis()

        try:
            if category and category.strip():
                questions = self.repository.get_questions_by_category(category).value
            else:
                questions = self.repository.get_questions_with_answers().value

            total = len(questions)
            answered = sum(1 for q in questions if q.has_answers)
            popular = extract_categories(questions)
            analysis.total_questions = total
            analysis.answered_questions = answered
            analysis.unanswered_questions = total - answered
            analysis.answer_rate = answer_rate(answered, total)
            analysis.average_answers_per_question = average_answers(
                sum(q.answer_count for q in questions), answered
            )
            analysis.popular_categories = popular
        except Exception as e:
            logger.error(f"Error computing basic statistics (category={category}): {e}")

        # Each of these already degrades to an empty value on its own
        analysis.category_stats = self.get_category_statistics()
        analysis.suggested_categories = self.extract_categories_from_questions()
        analysis.recent_activity = self.get_recent_activity()

        return analysis
