"""Base repository interface."""

from abc import ABC, abstractmethod
from typing import List, Optional
from uuid import UUID

from ..domain.models import ApplicationStatus, PatentApplication


class Repository(ABC):
    """Abstract base class for patent application storage."""

    @abstractmethod
    async def get_application(self, application_id: UUID) -> Optional[PatentApplication]:
        """Retrieve an application by ID."""
        pass

    @abstractmethod
    async def list_applications(
        self,
        status: Optional[ApplicationStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[PatentApplication]:
        """List applications, most recently updated first."""
        pass

    @abstractmethod
    async def create_application(
        self,
        title: Optional[str] = None,
        problem: Optional[str] = None,
        solution: Optional[str] = None,
    ) -> PatentApplication:
        """Create a new draft application."""
        pass

    @abstractmethod
    async def save_application(self, application: PatentApplication) -> PatentApplication:
        """Persist an application; the last write wins."""
        pass
