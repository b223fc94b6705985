from __future__ import annotations

import logging
from typing import Mapping, Union

import anyio

from .pipeline.llm_correct import suggest_corrections
from .pipeline.llm_extract import extract_passport_fields
from .pipeline.rules import ensure_valid
from .schemas import PassportFields, ResultEnvelope, SuggestionSet

LOGGER = logging.getLogger(__name__)

EXTRACTION_FAILED = "Failed to extract passport data. Please try again."
SUGGESTIONS_FAILED = "Failed to get suggestions. Please try again."


async def request_extraction(document: str) -> ResultEnvelope[PassportFields]:
    try:
        fields = await anyio.to_thread.run_sync(extract_passport_fields, document)
    except Exception:  # noqa: BLE001
        LOGGER.exception("Passport extraction failed")
        return ResultEnvelope[PassportFields].failure(EXTRACTION_FAILED)
    return ResultEnvelope[PassportFields].success(fields)


async def request_suggestions(
    fields: Union[PassportFields, Mapping[str, object]],
    document: str,
) -> ResultEnvelope[SuggestionSet]:
    try:
        if not isinstance(fields, PassportFields):
            fields = PassportFields.model_validate(dict(fields))
        validated = ensure_valid(fields)
        suggestions = await anyio.to_thread.run_sync(suggest_corrections, validated, document)
    except Exception:  # noqa: BLE001
        LOGGER.exception("Correction suggestions failed")
        return ResultEnvelope[SuggestionSet].failure(SUGGESTIONS_FAILED)
    return ResultEnvelope[SuggestionSet].success(suggestions)
