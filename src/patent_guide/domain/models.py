"""Domain models for the patent guidance application."""

import time
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ApplicationStateError(ValueError):
    """Raised when a patent application cannot change to the requested status."""


class Role(str, Enum):
    """Speaker of a transcript entry."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ApplicationStatus(str, Enum):
    """Lifecycle status of a patent application."""

    DRAFT = "draft"
    COMPLETE = "complete"
    PUBLISHED = "published"


class AssistantContent(BaseModel):
    """Structured form of an assistant turn as it is stored."""

    model_config = ConfigDict(frozen=True)

    problem: str = ""
    solution: str = ""
    title: str = ""
    message: str = ""


class Message(BaseModel):
    """One turn in the conversation."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: Union[AssistantContent, str] = ""
    timestamp: int = Field(default_factory=lambda: int(time.time()))

    @model_validator(mode="before")
    @classmethod
    def _accept_legacy_message_key(cls, data: Any) -> Any:
        # Older rows kept user/system text under "message" instead of "content".
        if isinstance(data, dict) and "content" not in data and "message" in data:
            data = {**data, "content": data["message"]}
            data.pop("message")
        return data

    @property
    def text(self) -> str:
        """Conversational text of the turn, whatever its stored shape."""
        if isinstance(self.content, AssistantContent):
            return self.content.message
        return self.content or ""


class ExtractionResult(BaseModel):
    """Normalized fields recovered from one raw assistant reply."""

    model_config = ConfigDict(frozen=True)

    suggested_problem: Optional[str] = None
    suggested_solution: Optional[str] = None
    suggested_title: Optional[str] = None
    display_message: str = ""


class PatentApplication(BaseModel):
    """A patent application with its problem/solution pair and chat history."""

    id: UUID = Field(default_factory=uuid4)
    title: Optional[str] = None
    problem: Optional[str] = None
    solution: Optional[str] = None
    status: ApplicationStatus = ApplicationStatus.DRAFT
    chat_history: List[Message] = []
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_draft(self) -> bool:
        return self.status == ApplicationStatus.DRAFT

    @property
    def is_complete(self) -> bool:
        return self.status == ApplicationStatus.COMPLETE

    @property
    def is_published(self) -> bool:
        return self.status == ApplicationStatus.PUBLISHED

    def has_problem_and_solution(self) -> bool:
        return bool((self.problem or "").strip() and (self.solution or "").strip())

    def mark_complete(self) -> None:
        """Move to ``complete``; both problem and solution must be filled in."""
        if not self.has_problem_and_solution():
            raise ApplicationStateError(
                "Cannot mark as complete. Please ensure both problem and solution are provided."
            )
        self.status = ApplicationStatus.COMPLETE

    def publish(self) -> None:
        """Move a complete application to ``published``."""
        if not self.is_complete:
            raise ApplicationStateError(
                "Patent application must be marked as complete before publishing."
            )
        if not self.has_problem_and_solution():
            raise ApplicationStateError("Cannot publish incomplete application")
        self.status = ApplicationStatus.PUBLISHED

    def summary(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "problem": self.problem,
            "solution": self.solution,
            "status": self.status,
            "chat_count": len(self.chat_history),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class GuidanceResult(BaseModel):
    """Outcome of one guided conversation turn."""

    transcript: List[Message]
    problem: Optional[str] = None
    solution: Optional[str] = None
    title: Optional[str] = None
    display_message: str
    suggested_problem: Optional[str] = None
    suggested_solution: Optional[str] = None
    suggested_title: Optional[str] = None
    raw_response: Optional[str] = None
    off_topic: bool = False
