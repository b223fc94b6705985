from __future__ import annotations

import json
from typing import Dict

from ..field_registry import iter_fields


SYSTEM_PROMPT = "Return JSON only. Do not wrap in markdown."

EXTRACT_PROMPT = """
You are an expert in extracting data from passports.
Extract the following information from the attached passport image or PDF.
If the image is blurry and a value cannot be read, return an empty string for it. Never guess.

Fields:
{field_lines}

Dates must use the {date_format} format.

Return this exact shape:
{shape}
""".strip()

SUGGEST_PROMPT = """
You are an assistant that suggests corrections for passport data extracted by OCR.

Given the extracted values below and the attached passport image or PDF, provide suggestions for each field.
Rules:
- Return an ordered list of candidate values per field, most likely first.
- If a field looks correct, return its current value as the only suggestion.
- Never return an empty list for a field whose current value is not empty.
- Focus on likely OCR errors and unclear characters (0/O, 1/I, 5/S, 8/B).
- Dates must use the {date_format} format.

Extracted values:
{value_lines}

Return this exact shape:
{shape}
""".strip()


def _extract_shape() -> str:
    return json.dumps({spec.wire_name: "string" for spec in iter_fields()}, indent=2)


def _suggest_shape() -> str:
    return json.dumps({spec.wire_name: ["string"] for spec in iter_fields()}, indent=2)


def build_extract_prompt(date_format: str) -> str:
    field_lines = "\n".join(f"- {spec.wire_name}: {spec.prompt_hint}" for spec in iter_fields())
    return EXTRACT_PROMPT.format(field_lines=field_lines, date_format=date_format, shape=_extract_shape())


def build_suggest_prompt(values: Dict[str, str], date_format: str) -> str:
    value_lines = "\n".join(
        f"- {spec.label} ({spec.wire_name}): {json.dumps(values.get(spec.key, ''))}"
        for spec in iter_fields()
    )
    return SUGGEST_PROMPT.format(value_lines=value_lines, date_format=date_format, shape=_suggest_shape())
