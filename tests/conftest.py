"""Shared fixtures: an in-memory database, a fixed clock and wired repositories."""
from datetime import datetime

import pytest
from sqlalchemy.orm import sessionmaker

from config.database import DatabaseConfig, build_engine
from services.knowledge_base import KnowledgeBaseService
from services.knowledge_base_repository import KnowledgeBaseRepository
from services.questions_repository import QuestionsRepository
from services.shared.cache import ExpiringMemoryCache
from services.shared.clock import FixedClock
from services.shared.models import Base
from services.shared.records import AnswerRecord, QuestionRecord
from services.shared.store import Store

START = datetime(2024, 3, 1, 12, 0, 0)


@pytest.fixture
def clock():
    return FixedClock(START)


@pytest.fixture
def engine():
    engine = build_engine(DatabaseConfig(url="sqlite://"))
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def store(session_factory):
    return Store(session_factory)


@pytest.fixture
def cache(clock):
    return ExpiringMemoryCache(clock=clock)


@pytest.fixture
def kb_repository(store, cache):
    return KnowledgeBaseRepository(store, cache)


@pytest.fixture
def questions_repository(store, cache):
    return QuestionsRepository(store, cache)


@pytest.fixture
def knowledge_base(kb_repository, clock):
    return KnowledgeBaseService(kb_repository, clock)


@pytest.fixture
def make_question(store, clock):
    """Insert a question (and answers) directly through the store, bypassing the cache."""
    def _make(title, content, answers=(), created_at=None, user="alice"):
        when = created_at or clock.now()
        question = store.insert_question(QuestionRecord(
            title=title, content=content, created_by=user, created_at=when,
        ))
        for text in answers:
            store.insert_answer(AnswerRecord(
                question_id=question.id, content=text, created_by="bob", created_at=when,
            ))
        return question.id
    return _make
