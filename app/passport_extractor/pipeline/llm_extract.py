from __future__ import annotations

import logging
from typing import Dict, List

from ..config import CONFIG
from ..errors import ExtractionError, LLMError
from ..field_registry import iter_fields
from ..schemas import PassportFields
from .ingest import parse_data_uri
from .llm_client import call_llm_json
from .normalize import normalize_date, normalize_name, normalize_passport_number
from .prompts import build_extract_prompt

LOGGER = logging.getLogger(__name__)


def _clean_value(field_type: str, raw: object) -> str:
    if raw is None:
        return ""
    value = str(raw)
    if field_type == "name":
        return normalize_name(value)
    if field_type == "passport_number":
        return normalize_passport_number(value)
    if field_type == "date":
        return normalize_date(value)
    return value.strip()


def _missing_keys(output: Dict) -> List[str]:
    return [
        spec.wire_name
        for spec in iter_fields()
        if spec.wire_name not in output and spec.key not in output
    ]


def coerce_fields(output: Dict) -> PassportFields:
    """Map a model JSON object onto PassportFields.

    Every field must be present under its wire or attribute name; a present
    empty or null value means the field was unreadable and becomes "".
    """
    missing = _missing_keys(output)
    if missing:
        raise ExtractionError(f"Model reply is missing fields: {', '.join(missing)}")
    values: Dict[str, str] = {}
    for spec in iter_fields():
        raw = output.get(spec.wire_name, output.get(spec.key))
        if isinstance(raw, (dict, list)):
            raise ExtractionError(f"Model returned a non-string value for {spec.wire_name}")
        values[spec.key] = _clean_value(spec.field_type, raw)
    return PassportFields(**values)


def extract_passport_fields(document: str) -> PassportFields:
    parse_data_uri(document)
    prompt = build_extract_prompt(CONFIG.dates.display)
    try:
        output = call_llm_json(prompt, document)
    except LLMError as exc:
        raise ExtractionError(f"Passport extraction failed: {exc}") from exc
    fields = coerce_fields(output)
    LOGGER.info(
        "Extracted passport fields: %s",
        {spec.key: bool(getattr(fields, spec.key)) for spec in iter_fields()},
    )
    return fields
