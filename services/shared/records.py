"""Plain, immutable snapshots of stored questions and answers.

These are what the repositories hand out and what the cache holds. They are
detached from any database session, so sharing them across requests is safe.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional, Tuple, Dict, Any


@dataclass(frozen=True)
class AnswerRecord:
    """Answer snapshot."""
    question_id: int
    content: str
    created_by: str
    created_at: datetime
    id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'question_id': self.question_id,
            'content': self.content,
            'created_by': self.created_by,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class QuestionRecord:
    """Question snapshot, optionally carrying its answers."""
    title: str
    content: str
    created_by: str
    created_at: datetime
    id: Optional[int] = None
    answers: Tuple[AnswerRecord, ...] = field(default_factory=tuple)

    @property
    def has_answers(self) -> bool:
        return len(self.answers) > 0

    @property
    def answer_count(self) -> int:
        return len(self.answers)

    def with_answers(self, answers) -> 'QuestionRecord':
        return replace(self, answers=tuple(answers))

    def to_dict(self, include_answers: bool = True) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'title': self.title,
            'content': self.content,
            'created_by': self.created_by,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if include_answers:
            data['answers'] = [a.to_dict() for a in self.answers]
        return data
