"""Relational store for questions and answers.

Thin layer over SQLAlchemy sessions. Every method opens its own session, so a
store instance can be shared by concurrently handled requests. Rows are turned
into immutable records before the session closes.
"""
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional, Sequence

from sqlalchemy import func, or_, select, text
from sqlalchemy.orm import Session, selectinload, sessionmaker

from .errors import EntityValidationError, QuestionNotFoundError
from .models import Answer, Question, TITLE_MAX_LENGTH, CONTENT_MAX_LENGTH, USER_ID_MAX_LENGTH
from .records import AnswerRecord, QuestionRecord

logger = logging.getLogger(__name__)


def _validate_text(field: str, value: Optional[str], max_length: int) -> None:
    if value is None or not value.strip():
        raise EntityValidationError(field, "must not be blank")
    if len(value) > max_length:
        raise EntityValidationError(field, f"must be at most {max_length} characters (got {len(value)})")


def validate_question(record: QuestionRecord) -> None:
    """Reject questions whose fields exceed the column bounds."""
    _validate_text('title', record.title, TITLE_MAX_LENGTH)
    _validate_text('content', record.content, CONTENT_MAX_LENGTH)
    _validate_text('created_by', record.created_by, USER_ID_MAX_LENGTH)


def validate_answer(record: AnswerRecord) -> None:
    """Reject answers whose fields exceed the column bounds."""
    _validate_text('content', record.content, CONTENT_MAX_LENGTH)
    _validate_text('created_by', record.created_by, USER_ID_MAX_LENGTH)


def _answer_record(row: Answer) -> AnswerRecord:
    return AnswerRecord(
        id=row.id,
        question_id=row.question_id,
        content=row.content,
        created_by=row.created_by,
        created_at=row.created_at,
    )


def _question_record(row: Question, include_answers: bool) -> QuestionRecord:
    answers = tuple(_answer_record(a) for a in row.answers) if include_answers else ()
    return QuestionRecord(
        id=row.id,
        title=row.title,
        content=row.content,
        created_by=row.created_by,
        created_at=row.created_at,
        answers=answers,
    )


def _terms_filter(terms: Sequence[str]):
    """Title or content contains any of the terms, case-insensitively."""
    clauses = []
    for term in terms:
        clauses.append(func.lower(Question.title).contains(term, autoescape=True))
        clauses.append(func.lower(Question.content).contains(term, autoescape=True))
    return or_(*clauses)


class Store:
    """Source of truth for questions and answers."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Provide a transactional scope around a series of operations."""
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def ping(self) -> bool:
        """True when the database answers a trivial query."""
        with self.session_scope() as session:
            session.execute(text("SELECT 1"))
        return True

    # ----- reads -----

    def query_questions(self,
                        terms: Optional[Sequence[str]] = None,
                        answered: Optional[bool] = None,
                        include_answers: bool = True) -> List[QuestionRecord]:
        """Questions ordered by id, optionally filtered.

        Args:
            terms: lower-cased substrings; a question matches if its title or
                content contains any of them
            answered: True for questions with answers, False for those without
            include_answers: eager-load answers into the records
        """
        stmt = select(Question).order_by(Question.id)
        if terms:
            stmt = stmt.where(_terms_filter(terms))
        if answered is True:
            stmt = stmt.where(Question.answers.any())
        elif answered is False:
            stmt = stmt.where(~Question.answers.any())
        if include_answers:
            stmt = stmt.options(selectinload(Question.answers))

        with self.session_scope() as session:
            rows = session.execute(stmt).scalars().all()
            return [_question_record(row, include_answers) for row in rows]

    def get_question(self, question_id: int) -> Optional[QuestionRecord]:
        stmt = (
            select(Question)
            .where(Question.id == question_id)
            .options(selectinload(Question.answers))
        )
        with self.session_scope() as session:
            row = session.execute(stmt).scalars().first()
            return _question_record(row, True) if row is not None else None

    def count_questions(self,
                        terms: Optional[Sequence[str]] = None,
                        answered: Optional[bool] = None) -> int:
        stmt = select(func.count(Question.id))
        if terms:
            stmt = stmt.where(_terms_filter(terms))
        if answered is True:
            stmt = stmt.where(Question.answers.any())
        elif answered is False:
            stmt = stmt.where(~Question.answers.any())
        with self.session_scope() as session:
            return int(session.execute(stmt).scalar_one())

    def count_questions_between(self, start: datetime, end: datetime) -> int:
        """Questions created in the half-open interval [start, end)."""
        stmt = select(func.count(Question.id)).where(
            Question.created_at >= start, Question.created_at < end
        )
        with self.session_scope() as session:
            return int(session.execute(stmt).scalar_one())

    def count_answers_between(self, start: datetime, end: datetime) -> int:
        """Answers created in the half-open interval [start, end)."""
        stmt = select(func.count(Answer.id)).where(
            Answer.created_at >= start, Answer.created_at < end
        )
        with self.session_scope() as session:
            return int(session.execute(stmt).scalar_one())

    def question_titles(self) -> List[str]:
        with self.session_scope() as session:
            return list(session.execute(select(Question.title).order_by(Question.id)).scalars())

    def question_contents(self) -> List[str]:
        with self.session_scope() as session:
            return list(session.execute(select(Question.content).order_by(Question.id)).scalars())

    # ----- writes -----

    def insert_question(self, record: QuestionRecord) -> QuestionRecord:
        validate_question(record)
        with self.session_scope() as session:
            row = Question(
                title=record.title,
                content=record.content,
                created_by=record.created_by,
                created_at=record.created_at,
            )
            session.add(row)
            session.flush()
            created = _question_record(row, False)
        logger.debug(f"Inserted question {created.id}")
        return created

    def insert_answer(self, record: AnswerRecord) -> AnswerRecord:
        """Insert an answer; the referenced question must exist."""
        validate_answer(record)
        with self.session_scope() as session:
            if session.get(Question, record.question_id) is None:
                raise QuestionNotFoundError(record.question_id)
            row = Answer(
                question_id=record.question_id,
                content=record.content,
                created_by=record.created_by,
                created_at=record.created_at,
            )
            session.add(row)
            session.flush()
            created = _answer_record(row)
        logger.debug(f"Inserted answer {created.id} for question {created.question_id}")
        return created

    def update_question(self, record: QuestionRecord) -> Optional[QuestionRecord]:
        """Overwrite title and content. Returns None when the question is gone."""
        validate_question(record)
        with self.session_scope() as session:
            row = session.get(Question, record.id)
            if row is None:
                return None
            row.title = record.title
            row.content = record.content
            session.flush()
            return _question_record(row, True)

    def delete_question(self, question_id: int) -> bool:
        """Delete a question and, by cascade, its answers."""
        with self.session_scope() as session:
            row = session.get(Question, question_id)
            if row is None:
                return False
            session.delete(row)
        logger.debug(f"Deleted question {question_id}")
        return True
