"""In-memory repository implementation."""

import asyncio
from datetime import datetime
from threading import Lock
from typing import Dict, List, Optional
from uuid import UUID

import structlog

from ..domain.models import ApplicationStatus, PatentApplication
from .base import Repository

logger = structlog.get_logger()


def default_title(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"Patent Application {now.strftime('%Y-%m-%d %H:%M:%S')}"


class InMemoryRepository(Repository):
    """Process-wide in-memory store; callers always receive copies."""

    _instance = None
    _lock = Lock()

    def __new__(cls):
        with cls._lock:
            if cls._instance is None:
                cls._instance = super(InMemoryRepository, cls).__new__(cls)
                cls._instance._initialized = False
            return cls._instance

    def __init__(self) -> None:
        with self._lock:
            if self._initialized:
                return
            self._applications: Dict[UUID, PatentApplication] = {}
            self._async_lock = asyncio.Lock()
            self._initialized = True
            logger.info("repository_initialized")

    def clear(self) -> None:
        self._applications.clear()

    async def get_application(self, application_id: UUID) -> Optional[PatentApplication]:
        async with self._async_lock:
            application = self._applications.get(application_id)
            if application is None:
                logger.warning("application_not_found", application_id=str(application_id))
                return None
            return application.model_copy(deep=True)

    async def list_applications(
        self,
        status: Optional[ApplicationStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[PatentApplication]:
        async with self._async_lock:
            applications = [
                a for a in self._applications.values()
                if status is None or a.status == status
            ]
            applications.sort(key=lambda a: a.updated_at, reverse=True)
            return [a.model_copy(deep=True) for a in applications[offset : offset + limit]]

    async def create_application(
        self,
        title: Optional[str] = None,
        problem: Optional[str] = None,
        solution: Optional[str] = None,
    ) -> PatentApplication:
        application = PatentApplication(
            title=title or default_title(),
            problem=problem,
            solution=solution,
        )
        async with self._async_lock:
            self._applications[application.id] = application.model_copy(deep=True)
        logger.info("application_created", application_id=str(application.id))
        return application

    async def save_application(self, application: PatentApplication) -> PatentApplication:
        async with self._async_lock:
            if application.id not in self._applications:
                logger.error("application_not_found_for_save", application_id=str(application.id))
                raise ValueError(f"Patent application {application.id} not found")
            application.updated_at = datetime.utcnow()
            self._applications[application.id] = application.model_copy(deep=True)
        logger.debug(
            "application_saved",
            application_id=str(application.id),
            status=application.status.value,
            chat_count=len(application.chat_history),
        )
        return application
