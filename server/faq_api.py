"""FAQ knowledge base API.

Identity is established upstream: the gateway forwards the authenticated user
in ``X-User-Id`` and a comma-separated role list in ``X-User-Roles``.
"""
import logging
import os
from dataclasses import dataclass
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request, Response
from sqlalchemy.orm import sessionmaker

from config import AppConfig, DatabaseConfig, close_database, initialize_database
from observability.logging import log_performance, request_context, setup_logging_from_settings
from services.assistant import AssistantService, HuggingFaceClient, TextProvider
from services.knowledge_base import KnowledgeBaseService
from services.knowledge_base_repository import KnowledgeBaseRepository
from services.questions import QuestionsService
from services.questions_repository import QuestionsRepository
from services.shared.cache import ExpiringMemoryCache
from services.shared.clock import Clock, SystemClock
from services.shared.errors import EntityValidationError, QuestionNotFoundError, StoreUnavailableError
from services.shared.models import USER_ID_MAX_LENGTH
from services.shared.store import Store

from .schemas import (
    AnalysisResponse,
    AnswerCreateRequest,
    AnswerResponse,
    AskRequest,
    AskResponse,
    QuestionCreateRequest,
    QuestionResponse,
    SummaryRequest,
    SummaryResponse,
)

logger = logging.getLogger(__name__)

MANAGER_ROLE = "manager"


@dataclass
class CurrentUser:
    user_id: str
    roles: List[str]

    def has_role(self, role: str) -> bool:
        return role in self.roles


def current_user(x_user_id: Optional[str] = Header(None),
                 x_user_roles: Optional[str] = Header(None)) -> CurrentUser:
    """Dependency resolving the caller from upstream identity headers."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing user identity")
    if len(x_user_id) > USER_ID_MAX_LENGTH:
        raise HTTPException(status_code=401, detail="Invalid user identity")
    roles = [r.strip().lower() for r in (x_user_roles or "").split(",") if r.strip()]
    return CurrentUser(user_id=x_user_id.strip(), roles=roles)


def require_manager(user: CurrentUser = Depends(current_user)) -> CurrentUser:
    if not user.has_role(MANAGER_ROLE):
        raise HTTPException(status_code=403, detail="Manager role required")
    return user


def get_questions_service(request: Request) -> QuestionsService:
    return request.app.state.questions_service


def get_assistant(request: Request) -> AssistantService:
    return request.app.state.assistant


def create_app(session_factory: Optional[sessionmaker] = None,
               clock: Optional[Clock] = None,
               app_config: Optional[AppConfig] = None,
               provider: Optional[TextProvider] = None,
               cache: Optional[ExpiringMemoryCache] = None) -> FastAPI:
    """Build the API with its store, cache, repositories and services.

    Without ``session_factory`` the database is initialized from the
    environment and closed on shutdown. Without ``provider`` a HuggingFace
    client is built from the assistant settings; it stays disabled until an
    API key is present.
    """
    app_config = app_config or AppConfig()
    clock = clock or SystemClock()
    cache_settings = app_config.get_cache_settings()

    owns_database = session_factory is None
    if owns_database:
        session_factory = initialize_database(DatabaseConfig.from_env())

    store = Store(session_factory)
    if cache is None:
        cache = ExpiringMemoryCache(clock=clock, max_entries=cache_settings.get('max_entries', 1000))
    policies = app_config.get_cache_policies()

    if provider is None:
        provider = HuggingFaceClient.from_settings(app_config.get_assistant_settings())

    knowledge_base = KnowledgeBaseService(KnowledgeBaseRepository(store, cache, policies), clock)

    app = FastAPI(title="FAQ Knowledge Base API", version="0.1.0")
    app.state.store = store
    app.state.cache = cache
    app.state.questions_service = QuestionsService(QuestionsRepository(store, cache, policies), clock)
    app.state.knowledge_base = knowledge_base
    app.state.assistant = AssistantService(knowledge_base, provider, clock)

    @app.middleware("http")
    async def bind_request_context(request: Request, call_next):
        with request_context(request.headers.get("x-user-id"), request.headers.get("x-request-id")) as request_id:
            response = await call_next(request)
        response.headers["X-Request-Id"] = request_id
        return response

    @app.on_event("shutdown")
    def shutdown_event():
        if owns_database:
            close_database()

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/health/cache")
    def cache_health():
        stats = cache.stats()
        try:
            store.ping()
            stats["database"] = "ok"
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            stats["database"] = "unavailable"
        stats["status"] = "ok" if stats["database"] == "ok" else "degraded"
        return stats

    # Fixed paths are registered before /api/questions/{question_id}

    @app.post("/api/questions/summary", response_model=SummaryResponse)
    def generate_summary(req: SummaryRequest,
                         assistant: AssistantService = Depends(get_assistant),
                         user: CurrentUser = Depends(require_manager)):
        summary, source = assistant.generate_summary(req.question_title, req.question_content, req.answers)
        return SummaryResponse(summary=summary, source=source)

    @app.post("/api/questions/ask", response_model=AskResponse)
    def ask_question(req: AskRequest,
                     assistant: AssistantService = Depends(get_assistant),
                     user: CurrentUser = Depends(require_manager)):
        try:
            return AskResponse(**assistant.ask(req.query).to_dict())
        except Exception as e:
            logger.error(f"Error in assistant for user {user.user_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to process your question")

    @app.get("/api/questions/analyze", response_model=AnalysisResponse)
    @log_performance(threshold_ms=2000.0)
    def analyze_knowledge_base(category: Optional[str] = None,
                               assistant: AssistantService = Depends(get_assistant),
                               user: CurrentUser = Depends(require_manager)):
        try:
            return AnalysisResponse(**assistant.analyze(category))
        except Exception as e:
            logger.error(f"Error analyzing knowledge base: {e}")
            raise HTTPException(status_code=500, detail="Failed to analyze knowledge base")

    @app.get("/api/questions/categories", response_model=List[str])
    def get_categories(assistant: AssistantService = Depends(get_assistant),
                       user: CurrentUser = Depends(require_manager)):
        return assistant.categories()

    @app.get("/api/questions", response_model=List[QuestionResponse])
    def list_questions(service: QuestionsService = Depends(get_questions_service),
                       user: CurrentUser = Depends(current_user)):
        return service.get_all()

    @app.get("/api/questions/{question_id}", response_model=QuestionResponse)
    def get_question(question_id: int,
                     service: QuestionsService = Depends(get_questions_service),
                     user: CurrentUser = Depends(current_user)):
        question = service.get_by_id(question_id)
        if question is None:
            raise HTTPException(status_code=404, detail="Question not found")
        return question

    @app.post("/api/questions", response_model=QuestionResponse, status_code=201)
    def create_question(req: QuestionCreateRequest,
                        response: Response,
                        service: QuestionsService = Depends(get_questions_service),
                        user: CurrentUser = Depends(current_user)):
        try:
            created = service.add_question(req.title, req.content, user.user_id)
        except EntityValidationError as e:
            raise HTTPException(status_code=422, detail=str(e))
        except StoreUnavailableError as e:
            raise HTTPException(status_code=503, detail=str(e))
        response.headers["Location"] = f"/api/questions/{created.id}"
        return created.to_dict()

    @app.post("/api/questions/{question_id}", response_model=AnswerResponse, status_code=201)
    def create_answer(question_id: int,
                      req: AnswerCreateRequest,
                      response: Response,
                      service: QuestionsService = Depends(get_questions_service),
                      user: CurrentUser = Depends(current_user)):
        try:
            created = service.add_answer(question_id, req.content, user.user_id)
        except QuestionNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except EntityValidationError as e:
            raise HTTPException(status_code=422, detail=str(e))
        except StoreUnavailableError as e:
            raise HTTPException(status_code=503, detail=str(e))
        response.headers["Location"] = f"/api/questions/{question_id}"
        return created.to_dict()

    @app.delete("/api/questions/{question_id}", status_code=204)
    def delete_question(question_id: int,
                        service: QuestionsService = Depends(get_questions_service),
                        user: CurrentUser = Depends(current_user)):
        try:
            deleted = service.delete_question(question_id)
        except StoreUnavailableError as e:
            raise HTTPException(status_code=503, detail=str(e))
        if not deleted:
            raise HTTPException(status_code=404, detail="Question not found")
        return Response(status_code=204)

    return app


if __name__ == "__main__":
    import uvicorn

    settings = AppConfig()
    setup_logging_from_settings(settings.get_logging_settings())
    uvicorn.run(
        "server.faq_api:create_app",
        factory=True,
        host=os.getenv("FAQBASE_HOST", "127.0.0.1"),
        port=int(os.getenv("FAQBASE_PORT", "8000")),
    )
