"""Database models for questions and answers."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

TITLE_MAX_LENGTH = 100
CONTENT_MAX_LENGTH = 200
USER_ID_MAX_LENGTH = 64


class Question(Base):
    """Question posted by a user."""
    __tablename__ = 'questions'

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(TITLE_MAX_LENGTH), nullable=False)
    content = Column(String(CONTENT_MAX_LENGTH), nullable=False)
    created_by = Column(String(USER_ID_MAX_LENGTH), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Deleting a question removes its answers
    answers = relationship(
        "Answer",
        back_populates="question",
        cascade="all, delete-orphan",
        order_by="Answer.id",
    )

    __table_args__ = (
        Index('idx_questions_created_at', 'created_at'),
    )

    def __repr__(self) -> str:
        return f"<Question id={self.id} title={self.title[:30]!r}>"


class Answer(Base):
    """Answer attached to exactly one question."""
    __tablename__ = 'answers'

    id = Column(Integer, primary_key=True, autoincrement=True)
    question_id = Column(Integer, ForeignKey('questions.id', ondelete='CASCADE'), nullable=False)
    content = Column(String(CONTENT_MAX_LENGTH), nullable=False)
    created_by = Column(String(USER_ID_MAX_LENGTH), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    question = relationship("Question", back_populates="answers")

    __table_args__ = (
        Index('idx_answers_question_id', 'question_id'),
        Index('idx_answers_created_at', 'created_at'),
    )

    def __repr__(self) -> str:
        return f"<Answer id={self.id} question_id={self.question_id}>"
