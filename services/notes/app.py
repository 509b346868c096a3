"""Notes FastAPI application backed by an in-memory store."""

from __future__ import annotations

from http import HTTPStatus
from uuid import uuid4

from fastapi import FastAPI, HTTPException, status
from pydantic import BaseModel, Field

from api_response.config.settings import get_settings
from api_response.http.exception_handlers import register_exception_handlers
from api_response.observability.logger import configure_logging
from api_response.observability.middleware import CorrelationIdMiddleware

from .errors import (
    NoteLockedError,
    NoteNotFoundError,
    NotesQuotaExceeded,
    NoteValidationError,
)
from .rules import build_handlers, build_rules

SERVICE_NAME = "notes"
MAX_NOTES = 3

_settings = get_settings()
configure_logging(
    service_name=_settings.logging.service_name or SERVICE_NAME,
    level=_settings.logging.level,
)

app = FastAPI(title="Notes Service")
app.add_middleware(CorrelationIdMiddleware)
register_exception_handlers(
    app, rules=build_rules(), handlers=build_handlers(), settings=_settings
)


class NoteIn(BaseModel):
    title: str = Field(min_length=1, max_length=80)
    body: str = Field(default="")
    locked: bool = False


class Note(NoteIn):
    id: str


_NOTES: dict[str, Note] = {}


@app.get("/health", tags=["health"])
async def health() -> dict[str, str]:
    """Return a simple health payload for orchestration checks."""

    return {"status": "ok", "service": SERVICE_NAME}


@app.post("/notes", response_model=Note, status_code=status.HTTP_201_CREATED)
async def create_note(payload: NoteIn) -> Note:
    if len(_NOTES) >= MAX_NOTES:
        raise NotesQuotaExceeded(MAX_NOTES)
    if payload.title.strip().lower() == "untitled":
        raise NoteValidationError(
            ["title must be descriptive"],
            status_code=HTTPStatus.UNPROCESSABLE_ENTITY,
        )
    note = Note(id=uuid4().hex, **payload.model_dump())
    _NOTES[note.id] = note
    return note


@app.get("/notes/{note_id}", response_model=Note)
async def get_note(note_id: str) -> Note:
    note = _NOTES.get(note_id)
    if note is None:
        raise NoteNotFoundError(note_id)
    return note


@app.put("/notes/{note_id}", response_model=Note)
async def update_note(note_id: str, payload: NoteIn) -> Note:
    note = await get_note(note_id)
    if note.locked:
        raise NoteLockedError(f"Note '{note_id}' is locked.")
    updated = Note(id=note_id, **payload.model_dump())
    _NOTES[note_id] = updated
    return updated


@app.delete("/notes/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_note(note_id: str) -> None:
    if note_id not in _NOTES:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No such note.")
    del _NOTES[note_id]


@app.post("/notes/{note_id}/sync")
async def sync_note(note_id: str) -> dict[str, str]:
    """Pretend to push a note to remote storage, which always times out."""

    await get_note(note_id)
    raise TimeoutError(f"sync of '{note_id}' timed out")


def reset_store() -> None:
    _NOTES.clear()


def get_app() -> FastAPI:
    """Return the FastAPI app instance."""

    return app


__all__ = ["app", "get_app", "reset_store"]
