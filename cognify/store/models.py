"""Persisted entities of a tutoring session."""

import hashlib
import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, model_validator

DEFAULT_SESSION_TITLE = "New Chat"
DEFAULT_FILE_NAME = "document.pdf"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


def text_digest(text: str) -> str:
    """Return the sha256 hex digest of ``text``, used to address documents."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class Role(str, Enum):
    learner = "learner"
    tutor = "tutor"


class Session(BaseModel):
    """One persisted tutoring conversation."""

    id: str = Field(default_factory=new_id)
    title: str = DEFAULT_SESSION_TITLE
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    correct_count: int = Field(default=0, ge=0)
    total_evaluated: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _check_counters(self) -> "Session":
        if self.correct_count > self.total_evaluated:
            raise ValueError(
                f"correct_count ({self.correct_count}) exceeds "
                f"total_evaluated ({self.total_evaluated})"
            )
        return self


class Turn(BaseModel):
    """One message of the dialogue, appended and never modified."""

    id: str = Field(default_factory=new_id)
    session_id: str
    role: Role
    text: str
    created_at: datetime = Field(default_factory=utc_now)


class DocumentArtifact(BaseModel):
    """An uploaded document's extracted text and its study index."""

    id: str = Field(default_factory=new_id)
    session_id: str
    file_name: str = DEFAULT_FILE_NAME
    extracted_text: str = ""
    chapter_index: list[str] = Field(default_factory=list)
    content_hash: str = ""
    uploaded_at: datetime = Field(default_factory=utc_now)


class SessionSummary(BaseModel):
    """Session plus the counts shown in a session list."""

    session: Session
    turn_count: int
    artifact_count: int
