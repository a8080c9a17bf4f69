"""
FastAPI Application Module

Web controller for the patent application form. Each application carries a
problem/solution pair, a title and the chat transcript of the guided
conversation that helps the user write them.

Key Features:
- Guided problem -> title -> solution chat backed by an LLM
- Explicit acceptance of AI suggestions, never silent adoption
- Draft -> complete -> published status workflow
- Rate limiting, structured logging, Prometheus metrics and tracing
"""

from functools import lru_cache
from typing import List, Optional
from uuid import UUID

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from prometheus_client import CollectorRegistry, Counter, generate_latest
from pydantic import BaseModel
from structlog import get_logger

from .. import config
from ..domain.models import ApplicationStateError, ApplicationStatus, PatentApplication
from ..repositories.memory import InMemoryRepository
from ..services.guidance import PatentGuidanceService
from ..services.llm import ChatClient, LazyChatClient
from .rate_limiter import RateLimiter, RateLimitExceeded, rate_limit_middleware

CUSTOM_REGISTRY = CollectorRegistry()

REQUESTS = Counter("requests_total", "Total requests", registry=CUSTOM_REGISTRY)
ERRORS = Counter("errors_total", "Total failed requests", registry=CUSTOM_REGISTRY)
CHAT_TURNS = Counter("chat_turns_total", "Guided chat turns processed", registry=CUSTOM_REGISTRY)
OFF_TOPIC = Counter("off_topic_redirects_total", "Turns answered with the off-topic redirect", registry=CUSTOM_REGISTRY)
CHAT_FAILURES = Counter("chat_client_failures_total", "Chat API calls that raised", registry=CUSTOM_REGISTRY)

CHAT_FAILURE_MESSAGE = "I'm sorry, I couldn't process that request properly."

logger = get_logger()


class ApplicationCreate(BaseModel):
    title: Optional[str] = None
    problem: Optional[str] = None
    solution: Optional[str] = None


class ApplicationUpdate(BaseModel):
    title: Optional[str] = None
    problem: Optional[str] = None
    solution: Optional[str] = None


class ProblemUpdate(BaseModel):
    problem: str


class SolutionUpdate(BaseModel):
    solution: str


class ChatRequest(BaseModel):
    """A user's chat turn plus the suggestions they chose to accept."""
    message: str
    problem: Optional[str] = None
    solution: Optional[str] = None
    update_problem: bool = False
    update_solution: bool = False
    update_title: bool = False


class ChatResponse(BaseModel):
    display_message: str
    suggested_problem: Optional[str] = None
    suggested_solution: Optional[str] = None
    suggested_title: Optional[str] = None
    off_topic: bool = False
    application: PatentApplication


repository = InMemoryRepository()
rate_limiter = RateLimiter(rate_limit=config.RATE_LIMIT, time_window=config.RATE_LIMIT_WINDOW)


def get_repository() -> InMemoryRepository:
    """Returns the application storage instance"""
    return repository


@lru_cache(maxsize=1)
def get_chat_client() -> ChatClient:
    """Returns the configured chat API client, built on its first request"""
    return LazyChatClient()


def get_guidance_service(chat_client: ChatClient = Depends(get_chat_client)) -> PatentGuidanceService:
    return PatentGuidanceService(chat_client)


def get_rate_limiter() -> RateLimiter:
    """Returns the rate limiting service"""
    return rate_limiter


app = FastAPI(
    title="Patent Guide API",
    description="Guided problem/solution drafting for patent applications",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

FastAPIInstrumentor.instrument_app(app)


@app.middleware("http")
async def logging_middleware(request: Request, call_next):
    """Tracks requests and enforces rate limits"""
    REQUESTS.inc()
    logger.info("request_started", method=request.method, path=request.url.path)
    try:
        await rate_limit_middleware(request, get_rate_limiter())
    except RateLimitExceeded as e:
        ERRORS.inc()
        return JSONResponse(status_code=429, content={"detail": str(e)})
    try:
        return await call_next(request)
    except Exception as e:
        ERRORS.inc()
        logger.error("request_failed", path=request.url.path, error=str(e))
        raise


async def _load(application_id: UUID, repository: InMemoryRepository) -> PatentApplication:
    application = await repository.get_application(application_id)
    if application is None:
        raise HTTPException(status_code=404, detail="Patent application not found")
    return application


@app.get("/up")
async def health_check():
    return {"status": "ok"}


@app.get("/patent_applications", response_model=List[PatentApplication])
async def list_applications(
    status: Optional[ApplicationStatus] = None,
    limit: int = 100,
    offset: int = 0,
    repository: InMemoryRepository = Depends(get_repository),
) -> List[PatentApplication]:
    """Lists applications, most recently updated first, optionally by status"""
    return await repository.list_applications(status=status, limit=limit, offset=offset)


@app.post("/patent_applications", response_model=PatentApplication, status_code=201)
async def create_application(
    payload: Optional[ApplicationCreate] = None,
    repository: InMemoryRepository = Depends(get_repository),
) -> PatentApplication:
    """Creates a draft application; a timestamped title is used when none is given"""
    payload = payload or ApplicationCreate()
    return await repository.create_application(
        title=payload.title, problem=payload.problem, solution=payload.solution
    )


@app.get("/patent_applications/{application_id}", response_model=PatentApplication)
async def get_application(
    application_id: UUID,
    repository: InMemoryRepository = Depends(get_repository),
) -> PatentApplication:
    return await _load(application_id, repository)


@app.patch("/patent_applications/{application_id}", response_model=PatentApplication)
async def update_application(
    application_id: UUID,
    payload: ApplicationUpdate,
    repository: InMemoryRepository = Depends(get_repository),
) -> PatentApplication:
    application = await _load(application_id, repository)
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(application, field, value)
    logger.info("application_updated", application_id=str(application_id))
    return await repository.save_application(application)


@app.patch("/patent_applications/{application_id}/problem", response_model=PatentApplication)
async def update_problem(
    application_id: UUID,
    payload: ProblemUpdate,
    repository: InMemoryRepository = Depends(get_repository),
) -> PatentApplication:
    """Accepts a problem statement, typically an AI suggestion the user approved"""
    application = await _load(application_id, repository)
    application.problem = payload.problem
    logger.info("application_problem_updated", application_id=str(application_id))
    return await repository.save_application(application)


@app.patch("/patent_applications/{application_id}/solution", response_model=PatentApplication)
async def update_solution(
    application_id: UUID,
    payload: SolutionUpdate,
    repository: InMemoryRepository = Depends(get_repository),
) -> PatentApplication:
    """Accepts a solution statement, typically an AI suggestion the user approved"""
    application = await _load(application_id, repository)
    application.solution = payload.solution
    logger.info("application_solution_updated", application_id=str(application_id))
    return await repository.save_application(application)


@app.post("/patent_applications/{application_id}/mark_complete", response_model=PatentApplication)
async def mark_complete(
    application_id: UUID,
    repository: InMemoryRepository = Depends(get_repository),
) -> PatentApplication:
    application = await _load(application_id, repository)
    try:
        application.mark_complete()
    except ApplicationStateError as e:
        logger.info("application_mark_complete_rejected", application_id=str(application_id))
        raise HTTPException(status_code=409, detail=str(e))
    return await repository.save_application(application)


@app.post("/patent_applications/{application_id}/publish", response_model=PatentApplication)
async def publish(
    application_id: UUID,
    repository: InMemoryRepository = Depends(get_repository),
) -> PatentApplication:
    application = await _load(application_id, repository)
    try:
        application.publish()
    except ApplicationStateError as e:
        logger.info("application_publish_rejected", application_id=str(application_id))
        raise HTTPException(status_code=409, detail=str(e))
    return await repository.save_application(application)


@app.post("/patent_applications/{application_id}/chat", response_model=ChatResponse)
async def chat(
    application_id: UUID,
    payload: ChatRequest,
    repository: InMemoryRepository = Depends(get_repository),
    guidance: PatentGuidanceService = Depends(get_guidance_service),
) -> ChatResponse:
    """
    Runs one guided conversation turn for an application.
    Suggestions are returned to the caller and only written to the record
    when the matching update flag is set.
    """
    user_message = payload.message.strip()
    if not user_message:
        raise HTTPException(status_code=422, detail="Message must not be blank")

    application = await _load(application_id, repository)

    if payload.problem and not (application.problem or "").strip():
        application.problem = payload.problem
    if payload.solution and not (application.solution or "").strip():
        application.solution = payload.solution

    try:
        result = await guidance.guide_problem_solution(
            transcript=application.chat_history,
            user_input=user_message,
            current_problem=application.problem,
            current_solution=application.solution,
            current_title=application.title,
            update_problem=payload.update_problem,
            update_solution=payload.update_solution,
            update_title=payload.update_title,
        )
    except Exception as e:
        CHAT_FAILURES.inc()
        logger.error("chat_turn_failed", application_id=str(application_id), error=str(e))
        raise HTTPException(status_code=502, detail=CHAT_FAILURE_MESSAGE)

    CHAT_TURNS.inc()
    if result.off_topic:
        OFF_TOPIC.inc()

    application.chat_history = result.transcript
    application.problem = result.problem
    application.solution = result.solution
    application.title = result.title
    application = await repository.save_application(application)

    logger.info(
        "chat_turn_processed",
        application_id=str(application_id),
        off_topic=result.off_topic,
        chat_count=len(application.chat_history),
    )

    return ChatResponse(
        display_message=result.display_message,
        suggested_problem=result.suggested_problem,
        suggested_solution=result.suggested_solution,
        suggested_title=result.suggested_title,
        off_topic=result.off_topic,
        application=application,
    )


@app.get("/metrics")
async def metrics():
    """Provides Prometheus metrics for system monitoring"""
    return Response(generate_latest(CUSTOM_REGISTRY), media_type="text/plain")
