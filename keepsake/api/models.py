from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, Field


# --- content editor ---


class ContentType(StrEnum):
    note = "note"
    journal = "journal"
    story = "story"
    memory = "memory"
    other = "other"


CONTENT_TYPE_LABELS: dict[ContentType, str] = {
    ContentType.note: "Note",
    ContentType.journal: "Journal Entry",
    ContentType.story: "Story",
    ContentType.memory: "Memory",
    ContentType.other: "Other",
}


class ContentForm(BaseModel):
    """Raw editor input. `tags` is the comma separated text field as typed."""

    title: str = Field(..., min_length=1)
    content_type: ContentType = ContentType.note
    content: str = Field(..., min_length=1)
    tags: str | None = None
    is_private: bool = True


class ContentRecord(BaseModel):
    """Row inserted into `user_content`."""

    user_id: str | None = None
    title: str
    content_type: ContentType
    content: str
    tags: list[str] = Field(default_factory=list)
    is_private: bool = True


class Notice(BaseModel):
    ok: bool
    message: str


class SubmittingStatus(BaseModel):
    submitting: bool


class ContentTypeOption(BaseModel):
    value: ContentType
    label: str


# --- uploader ---


class AssetCategory(StrEnum):
    image = "image"
    audio = "audio"
    document = "document"


class UploadResult(BaseModel):
    ok: bool = True
    message: str
    category: AssetCategory
    bucket: str
    key: str
    public_url: str

    # Which inline preview the page should render; documents get none.
    preview: Literal["image", "audio"] | None = None


class UploadingStatus(BaseModel):
    uploading: bool


class CategoryInfo(BaseModel):
    label: str
    bucket: str
    accept: str


# --- matching game ---


class MatchPhase(StrEnum):
    idle = "idle"
    one_revealed = "one_revealed"
    evaluating = "evaluating"
    complete = "complete"


class MatchCard(BaseModel):
    id: int
    value: str
    revealed: bool = False
    matched: bool = False


class PendingResolution(BaseModel):
    kind: Literal["match", "mismatch"]
    indices: tuple[int, int]
    due_at_ms: int


class MatchGameState(BaseModel):
    session_id: str
    cards: list[MatchCard]

    # Indices revealed in the current round, in click order (0..2 entries).
    awaiting: list[int] = Field(default_factory=list)

    moves: int = 0
    phase: MatchPhase = MatchPhase.idle
    pending: PendingResolution | None = None
    created_at: datetime
    last_updated_at: datetime


class MatchCardView(BaseModel):
    id: int
    face: str
    revealed: bool
    matched: bool


class MatchGameView(BaseModel):
    session_id: str
    cards: list[MatchCardView]
    moves: int
    phase: MatchPhase
    completed: bool
    message: str | None = None
    accepted: bool = True


# --- quiz ---


class QuizPhase(StrEnum):
    in_progress = "in_progress"
    complete = "complete"


class QuizQuestion(BaseModel):
    prompt: str
    options: tuple[str, str, str, str]
    answer: str


class QuizState(BaseModel):
    session_id: str
    questions: list[QuizQuestion]
    current: int = 0
    score: int = 0
    phase: QuizPhase = QuizPhase.in_progress
    created_at: datetime
    last_updated_at: datetime


class QuizAnswerRequest(BaseModel):
    answer: str = Field(..., min_length=1)


class QuizView(BaseModel):
    session_id: str
    phase: QuizPhase
    score: int
    total: int

    # Present while in progress.
    question_number: int | None = None
    prompt: str | None = None
    options: list[str] | None = None

    # Present once complete.
    tier: str | None = None
    message: str | None = None
