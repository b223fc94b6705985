from __future__ import annotations

import logging
from typing import Dict, Optional

from fastapi import FastAPI, File, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError as PydanticValidationError

from .actions import EXTRACTION_FAILED, request_extraction, request_suggestions
from .config import CONFIG
from .errors import DocumentError
from .field_registry import field_registry_payload
from .pipeline.ingest import file_to_data_uri, guess_mime_type
from .schemas import FieldChoice, FieldEdits, FieldRef, PassportFields, ResultEnvelope, SuggestRequest
from .session import PassportSession, SessionStore

logging.basicConfig(level=CONFIG.log_level, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
LOGGER = logging.getLogger("passport_extractor")

SESSIONS = SessionStore()

app = FastAPI(title="Passport Extractor")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _session_or_404(session_id: str) -> Optional[PassportSession]:
    try:
        return SESSIONS.get(session_id)
    except KeyError:
        return None


def _not_found() -> JSONResponse:
    return JSONResponse({"error": "Session not found"}, status_code=404)


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=400)


@app.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/field_registry")
async def field_registry() -> Dict[str, object]:
    return field_registry_payload()


@app.post("/extract")
async def extract(passport: UploadFile = File(None)):
    if passport is None:
        return _bad_request("Missing passport upload")
    content = await passport.read()
    mime_type = guess_mime_type(passport.filename, passport.content_type)
    try:
        document = file_to_data_uri(content, mime_type)
    except DocumentError as exc:
        LOGGER.warning("extract: rejected upload %s: %s", passport.filename, exc)
        return JSONResponse(ResultEnvelope[PassportFields].failure(EXTRACTION_FAILED).wire())
    envelope = await request_extraction(document)
    LOGGER.info("extract: %s ok=%s", passport.filename, envelope.ok)
    return JSONResponse(envelope.wire())


@app.post("/suggest")
async def suggest(payload: Dict):
    try:
        request = SuggestRequest.model_validate(payload)
    except PydanticValidationError as exc:
        return _bad_request(f"Invalid payload: {exc.error_count()} error(s)")
    envelope = await request_suggestions(request.fields, request.document)
    LOGGER.info("suggest: ok=%s", envelope.ok)
    return JSONResponse(envelope.wire())


@app.post("/sessions")
async def create_session():
    session = SESSIONS.create()
    LOGGER.info("Created session %s", session.session_id)
    return JSONResponse(session.snapshot(), status_code=201)


@app.get("/sessions/{session_id}")
async def get_session(session_id: str):
    session = _session_or_404(session_id)
    if session is None:
        return _not_found()
    return JSONResponse(session.snapshot())


@app.delete("/sessions/{session_id}")
async def delete_session(session_id: str):
    if _session_or_404(session_id) is None:
        return _not_found()
    SESSIONS.delete(session_id)
    return JSONResponse({"session_id": session_id, "deleted": True})


@app.post("/sessions/{session_id}/upload")
async def upload(session_id: str, passport: UploadFile = File(None)):
    session = _session_or_404(session_id)
    if session is None:
        return _not_found()
    if passport is None:
        return _bad_request("Missing passport upload")
    if session.is_extracting:
        return JSONResponse({"error": "Extraction already in progress"}, status_code=409)
    content = await passport.read()
    await session.select_file(passport.filename, content, passport.content_type)
    return JSONResponse(session.snapshot())


@app.post("/sessions/{session_id}/suggest")
async def session_suggest(session_id: str):
    session = _session_or_404(session_id)
    if session is None:
        return _not_found()
    if session.is_suggesting:
        return JSONResponse({"error": "Suggestions already in progress"}, status_code=409)
    await session.request_suggestions()
    return JSONResponse(session.snapshot())


@app.patch("/sessions/{session_id}/fields")
async def edit_fields(session_id: str, payload: Dict):
    session = _session_or_404(session_id)
    if session is None:
        return _not_found()
    try:
        edits = FieldEdits.model_validate(payload)
        session.edit_fields(edits.values)
    except PydanticValidationError:
        return _bad_request("Invalid payload")
    except KeyError as exc:
        return _bad_request(str(exc.args[0]))
    except RuntimeError as exc:
        return JSONResponse({"error": str(exc)}, status_code=409)
    return JSONResponse(session.snapshot())


@app.post("/sessions/{session_id}/choose")
async def choose(session_id: str, payload: Dict):
    session = _session_or_404(session_id)
    if session is None:
        return _not_found()
    try:
        choice = FieldChoice.model_validate(payload)
        session.choose_suggestion(choice.field, choice.value)
    except PydanticValidationError:
        return _bad_request("Invalid payload")
    except KeyError as exc:
        return _bad_request(str(exc.args[0]))
    except ValueError as exc:
        return _bad_request(str(exc))
    except RuntimeError as exc:
        return JSONResponse({"error": str(exc)}, status_code=409)
    return JSONResponse(session.snapshot())


@app.post("/sessions/{session_id}/save")
async def save(session_id: str):
    session = _session_or_404(session_id)
    if session is None:
        return _not_found()
    envelope = session.save()
    return JSONResponse({"result": envelope.wire(), "session": session.snapshot()})


@app.post("/sessions/{session_id}/copy")
async def copy_field(session_id: str, payload: Dict):
    session = _session_or_404(session_id)
    if session is None:
        return _not_found()
    try:
        ref = FieldRef.model_validate(payload)
        value = session.copy_field(ref.field)
    except PydanticValidationError:
        return _bad_request("Invalid payload")
    except KeyError as exc:
        return _bad_request(str(exc.args[0]))
    except ValueError as exc:
        return _bad_request(str(exc))
    return JSONResponse({"value": value, "session": session.snapshot()})


@app.post("/sessions/{session_id}/reset")
async def reset(session_id: str):
    session = _session_or_404(session_id)
    if session is None:
        return _not_found()
    session.reset()
    return JSONResponse(session.snapshot())


@app.get("/sessions/{session_id}/preview")
async def preview(session_id: str):
    session = _session_or_404(session_id)
    if session is None:
        return _not_found()
    if not session.preview_id or session.preview_id not in SESSIONS.previews:
        return JSONResponse({"error": "No preview available"}, status_code=404)
    try:
        png = SESSIONS.previews.render(session.preview_id)
    except Exception as exc:  # noqa: BLE001
        LOGGER.warning("Preview render failed for session %s: %s", session_id, exc)
        return JSONResponse({"error": "Preview unavailable"}, status_code=422)
    return Response(content=png, media_type="image/png")
