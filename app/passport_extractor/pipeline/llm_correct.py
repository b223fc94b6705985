from __future__ import annotations

import logging
from typing import Dict, List

from ..config import CONFIG
from ..errors import DocumentError, LLMError, SuggestionError
from ..field_registry import iter_fields
from ..schemas import PassportFields, SuggestionSet
from .ingest import parse_data_uri
from .llm_client import call_llm_json
from .prompts import build_suggest_prompt
from .rules import ensure_valid

LOGGER = logging.getLogger(__name__)


def _clean_suggestions(raw: object, current: str) -> List[str]:
    if raw is None:
        raw = []
    elif isinstance(raw, str):
        raw = [raw]
    elif not isinstance(raw, list):
        raise SuggestionError(f"Model returned {type(raw).__name__} instead of a suggestion list")
    cleaned: List[str] = []
    for item in raw:
        if item is None or isinstance(item, (dict, list)):
            continue
        value = str(item).strip()
        if value and value not in cleaned:
            cleaned.append(value)
    # A field that already had a value always keeps at least that value.
    if not cleaned and current:
        cleaned = [current]
    return cleaned


def _suggestion_keys(wire_name: str, key: str) -> List[str]:
    return [wire_name, f"{wire_name}Suggestions", key]


def coerce_suggestions(output: Dict, fields: PassportFields) -> SuggestionSet:
    """Map a model JSON object onto a SuggestionSet.

    Every field needs a list under one of its accepted keys; a present empty
    list or null keeps the current value as the only option.
    """
    missing = [
        spec.wire_name
        for spec in iter_fields()
        if not any(name in output for name in _suggestion_keys(spec.wire_name, spec.key))
    ]
    if missing:
        raise SuggestionError(f"Model reply is missing suggestions for: {', '.join(missing)}")
    lists: Dict[str, List[str]] = {}
    for spec in iter_fields():
        raw = None
        for name in _suggestion_keys(spec.wire_name, spec.key):
            if output.get(name) is not None:
                raw = output[name]
                break
        lists[spec.key] = _clean_suggestions(raw, getattr(fields, spec.key))
    return SuggestionSet(**lists)


def suggest_corrections(fields: PassportFields, document: str) -> SuggestionSet:
    ensure_valid(fields)
    try:
        parse_data_uri(document)
    except DocumentError as exc:
        raise SuggestionError(f"Invalid passport document: {exc}") from exc
    prompt = build_suggest_prompt(fields.model_dump(), CONFIG.dates.display)
    try:
        output = call_llm_json(prompt, document)
    except LLMError as exc:
        raise SuggestionError(f"Correction suggestions failed: {exc}") from exc
    suggestions = coerce_suggestions(output, fields)
    LOGGER.info(
        "Suggestions per field: %s",
        {spec.key: len(getattr(suggestions, spec.key)) for spec in iter_fields()},
    )
    return suggestions
