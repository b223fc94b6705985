from __future__ import annotations

import json
import logging
from typing import Dict, Optional

import requests

from ..config import LLMConfig, resolve_llm_config
from ..errors import LLMError
from .ingest import PDF_MIME, parse_data_uri
from .prompts import SYSTEM_PROMPT

LOGGER = logging.getLogger(__name__)


def _document_part(data_uri: str) -> Dict:
    document = parse_data_uri(data_uri)
    if document.mime_type == PDF_MIME:
        return {"type": "file", "file": {"filename": "passport.pdf", "file_data": data_uri}}
    return {"type": "image_url", "image_url": {"url": data_uri}}


def build_payload(prompt: str, data_uri: str, config: LLMConfig) -> Dict:
    return {
        "model": config.model,
        "messages": [
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    _document_part(data_uri),
                ],
            },
        ],
        "temperature": config.temperature,
        "response_format": {"type": "json_object"},
    }


def _strip_fences(content: str) -> str:
    text = content.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def call_llm_json(prompt: str, data_uri: str, config: Optional[LLMConfig] = None) -> Dict:
    """Send one prompt plus the document and return the parsed JSON object."""
    config = config or resolve_llm_config()
    if not config.enabled:
        raise LLMError("LLM disabled (ENABLE_LLM is not set)")
    if not config.endpoint:
        raise LLMError("LLM endpoint not configured")
    if not config.api_key:
        raise LLMError("LLM API key not configured")

    payload = build_payload(prompt, data_uri, config)
    headers = {"Content-Type": "application/json", "Authorization": f"Bearer {config.api_key}"}
    try:
        resp = requests.post(config.endpoint, json=payload, headers=headers, timeout=config.timeout)
        resp.raise_for_status()
        data = resp.json()
    except requests.HTTPError as exc:
        status = exc.response.status_code if exc.response is not None else None
        raise LLMError(f"LLM request failed: {exc}", status_code=status) from exc
    except (requests.RequestException, ValueError) as exc:
        raise LLMError(f"LLM request failed: {exc}") from exc

    choices = data.get("choices") if isinstance(data, dict) else None
    if not choices:
        raise LLMError("LLM response has no choices")
    content = (choices[0] or {}).get("message", {}).get("content")
    if content is None:
        raise LLMError("LLM response has no content")
    try:
        parsed = json.loads(_strip_fences(content))
    except json.JSONDecodeError as exc:
        raise LLMError(f"LLM returned invalid JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise LLMError("LLM returned non-object JSON")
    LOGGER.debug("LLM %s returned keys %s", config.model, sorted(parsed))
    return parsed
