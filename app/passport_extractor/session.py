from __future__ import annotations

import json
import logging
import time
import uuid
from collections import OrderedDict
from enum import Enum
from typing import Callable, Dict, List, Optional

from .actions import request_extraction, request_suggestions
from .config import CONFIG
from .errors import DocumentError
from .field_registry import iter_fields, require_field_spec
from .pipeline.ingest import file_to_data_uri, guess_mime_type
from .pipeline.rules import validate_passport_fields
from .previews import PreviewRegistry
from .schemas import FieldView, Notification, PassportFields, ResultEnvelope, SuggestionSet

LOGGER = logging.getLogger(__name__)

Listener = Callable[[Notification], None]


class FormState(str, Enum):
    EMPTY = "empty"
    EXTRACTING = "extracting"
    EXTRACTED = "extracted"
    SUGGESTING = "suggesting"


EDITABLE_STATES = {FormState.EXTRACTED, FormState.SUGGESTING}


class PassportSession:
    """Form state for one user: upload, extraction, edits and suggestions.

    Results of extraction and suggestion calls are applied only if no reset or
    newer upload happened while the call was in flight; each of those bumps
    `generation` and late results carrying an older value are dropped.
    """

    def __init__(self, previews: PreviewRegistry, session_id: Optional[str] = None):
        self.session_id = session_id or uuid.uuid4().hex
        self.previews = previews
        self.state = FormState.EMPTY
        self.fields = PassportFields()
        self.extracted: Optional[PassportFields] = None
        self.suggestions: Optional[SuggestionSet] = None
        self.document: Optional[str] = None
        self.preview_id: Optional[str] = None
        self.error: Optional[str] = None
        self.is_extracting = False
        self.is_suggesting = False
        self.generation = 0
        self.outbox: List[Notification] = []
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _notify(self, title: str, description: str = "", variant: str = "default") -> Notification:
        notification = Notification(title=title, description=description, variant=variant)
        self.outbox.append(notification)
        for listener in list(self._listeners):
            listener(notification)
        return notification

    def drain_notifications(self) -> List[Notification]:
        drained, self.outbox = self.outbox, []
        return drained

    def reset(self) -> None:
        self.previews.release(self.preview_id)
        self.preview_id = None
        self.document = None
        self.extracted = None
        self.suggestions = None
        self.error = None
        self.fields = PassportFields()
        self.is_extracting = False
        self.is_suggesting = False
        self.state = FormState.EMPTY
        self.generation += 1

    def _abandon_upload(self, error: str) -> None:
        self.previews.release(self.preview_id)
        self.preview_id = None
        self.document = None
        self.is_extracting = False
        self.state = FormState.EMPTY
        self.error = error

    async def select_file(self, filename: Optional[str], content: bytes, content_type: Optional[str] = None) -> bool:
        if self.is_extracting:
            LOGGER.warning("Session %s: upload ignored, extraction already running", self.session_id)
            return False
        self.reset()
        generation = self.generation
        mime_type = guess_mime_type(filename, content_type)
        self.preview_id = self.previews.register(content, mime_type)
        self.state = FormState.EXTRACTING
        self.is_extracting = True
        try:
            self.document = file_to_data_uri(content, mime_type)
        except DocumentError as exc:
            LOGGER.warning("Session %s: cannot read upload %s: %s", self.session_id, filename, exc)
            self._abandon_upload(str(exc))
            self._notify("Error", "An unexpected error occurred during file processing.", "destructive")
            return False

        envelope = await request_extraction(self.document)
        if generation != self.generation:
            LOGGER.info("Session %s: discarding stale extraction result", self.session_id)
            return False
        if not envelope.ok:
            self._abandon_upload(envelope.error or "")
            self._notify("Extraction Failed", envelope.error or "", "destructive")
            return False

        self.is_extracting = False
        self.extracted = envelope.value
        self.fields = envelope.value.model_copy()
        self.state = FormState.EXTRACTED
        self._notify("Extraction Complete", "Passport data has been extracted successfully.")
        return True

    def edit_field(self, name: str, value: str) -> None:
        if self.state not in EDITABLE_STATES:
            raise RuntimeError(f"Fields cannot be edited in state {self.state.value}")
        if self.is_suggesting:
            raise RuntimeError("Fields cannot be edited while suggestions are being fetched")
        spec = require_field_spec(name)
        setattr(self.fields, spec.key, "" if value is None else str(value))

    def edit_fields(self, values: Dict[str, str]) -> None:
        specs = {name: require_field_spec(name) for name in values}
        for name, value in values.items():
            self.edit_field(specs[name].key, value)

    def options_for(self, name: str) -> List[str]:
        spec = require_field_spec(name)
        if self.suggestions is None:
            return []
        return list(getattr(self.suggestions, spec.key))

    def choose_suggestion(self, name: str, value: str) -> None:
        spec = require_field_spec(name)
        options = self.options_for(spec.key)
        if value not in options:
            raise ValueError(f"{value!r} is not a suggestion for {spec.wire_name}")
        self.edit_field(spec.key, value)

    def _apply_suggestion_defaults(self, sent: PassportFields) -> None:
        for spec in iter_fields():
            options = self.options_for(spec.key)
            current = getattr(self.fields, spec.key)
            # Only fields still holding the value the suggestions were made for.
            if current != getattr(sent, spec.key):
                continue
            if options and current not in options:
                setattr(self.fields, spec.key, options[0])

    async def request_suggestions(self) -> bool:
        if self.state != FormState.EXTRACTED or not self.document:
            LOGGER.warning("Session %s: suggestions unavailable in state %s", self.session_id, self.state.value)
            return False
        generation = self.generation
        self.state = FormState.SUGGESTING
        self.is_suggesting = True
        sent = self.fields.model_copy()
        envelope = await request_suggestions(sent, self.document)
        if generation != self.generation:
            LOGGER.info("Session %s: discarding stale suggestions", self.session_id)
            return False

        self.is_suggesting = False
        self.state = FormState.EXTRACTED
        if not envelope.ok:
            self._notify("Suggestion Failed", envelope.error or "", "destructive")
            return False
        self.suggestions = envelope.value
        self._apply_suggestion_defaults(sent)
        self._notify("Suggestions Ready", "AI has provided correction suggestions.")
        return True

    def field_views(self) -> List[FieldView]:
        views = []
        for spec in iter_fields():
            options = self.options_for(spec.key)
            views.append(
                FieldView(
                    name=spec.key,
                    wire_name=spec.wire_name,
                    label=spec.label,
                    placeholder=spec.placeholder,
                    value=getattr(self.fields, spec.key),
                    mode="select" if options else "input",
                    options=options,
                )
            )
        return views

    def save(self) -> ResultEnvelope[PassportFields]:
        if self.state not in EDITABLE_STATES:
            return ResultEnvelope[PassportFields].failure("Upload a passport to begin extraction.")
        envelope = validate_passport_fields(self.fields.model_copy())
        if envelope.ok:
            self._notify("Data Saved (Simulated)", json.dumps(envelope.value.wire(), indent=2))
        else:
            self._notify("Invalid Information", envelope.error or "", "destructive")
        return envelope

    def copy_field(self, name: str) -> str:
        spec = require_field_spec(name)
        value = getattr(self.fields, spec.key)
        if not value:
            raise ValueError(f"{spec.label} is empty")
        self._notify(f"{spec.label} Copied", f'"{value}" has been copied to your clipboard.')
        return value

    def snapshot(self) -> Dict[str, object]:
        return {
            "session_id": self.session_id,
            "state": self.state.value,
            "fields": self.fields.wire(),
            "field_views": [view.model_dump() for view in self.field_views()],
            "suggestions": self.suggestions.wire() if self.suggestions else None,
            "error": self.error,
            "has_document": self.document is not None,
            "preview_id": self.preview_id,
            "is_extracting": self.is_extracting,
            "is_suggesting": self.is_suggesting,
            "notifications": [n.model_dump() for n in self.drain_notifications()],
        }


class SessionStore:
    """In-memory sessions; nothing survives a restart.

    Sessions idle longer than `ttl_seconds` are dropped, and once
    `max_sessions` is reached the least recently used one is dropped to make
    room. Dropping goes through `delete` so the session's preview is released.
    """

    def __init__(
        self,
        previews: Optional[PreviewRegistry] = None,
        ttl_seconds: Optional[float] = None,
        max_sessions: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.previews = previews or PreviewRegistry()
        self.ttl_seconds = CONFIG.sessions.ttl_seconds if ttl_seconds is None else ttl_seconds
        self.max_sessions = CONFIG.sessions.max_sessions if max_sessions is None else max_sessions
        self._clock = clock
        # Ordered oldest access first.
        self._sessions: "OrderedDict[str, PassportSession]" = OrderedDict()
        self._last_seen: Dict[str, float] = {}

    def _touch(self, session_id: str) -> None:
        self._sessions.move_to_end(session_id)
        self._last_seen[session_id] = self._clock()

    def evict_expired(self) -> List[str]:
        if self.ttl_seconds <= 0:
            return []
        cutoff = self._clock() - self.ttl_seconds
        expired = [sid for sid, seen in self._last_seen.items() if seen <= cutoff]
        for session_id in expired:
            LOGGER.info("Session %s expired after %.0fs idle", session_id, self.ttl_seconds)
            self.delete(session_id)
        return expired

    def create(self) -> PassportSession:
        self.evict_expired()
        while self.max_sessions > 0 and len(self._sessions) >= self.max_sessions:
            oldest = next(iter(self._sessions))
            LOGGER.info("Session store full, dropping least recently used session %s", oldest)
            self.delete(oldest)
        session = PassportSession(self.previews)
        self._sessions[session.session_id] = session
        self._touch(session.session_id)
        return session

    def get(self, session_id: str) -> PassportSession:
        self.evict_expired()
        session = self._sessions[session_id]
        self._touch(session_id)
        return session

    def delete(self, session_id: str) -> None:
        session = self._sessions.pop(session_id)
        self._last_seen.pop(session_id, None)
        session.reset()

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
