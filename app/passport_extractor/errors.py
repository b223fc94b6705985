from __future__ import annotations

from typing import Dict, Optional


class PassportError(Exception):
    """Base class for failures raised by the extraction pipeline."""


class ValidationError(PassportError):
    """One or more passport fields break a validation rule."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        super().__init__("; ".join(self.errors.values()) or "Invalid passport fields")


class ExtractionError(PassportError):
    pass


class DocumentError(ExtractionError):
    """The uploaded document cannot be sent to the model."""


class SuggestionError(PassportError):
    pass


class LLMError(PassportError):
    """Transport or shape failure talking to the model endpoint."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
