from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..config import CONFIG, DateConfig
from ..errors import ValidationError
from ..field_registry import FieldSpec, iter_fields
from ..schemas import PassportFields, ResultEnvelope
from .normalize import parse_strict_date


@dataclass
class RuleResult:
    is_valid: bool
    reasons: List[str] = field(default_factory=list)
    message: Optional[str] = None


def validate_required(spec: FieldSpec, value: str) -> RuleResult:
    if not value.strip():
        return RuleResult(False, ["required"], f"{spec.label} is required.")
    return RuleResult(True, ["required_ok"])


def validate_date(spec: FieldSpec, value: str, dates: Optional[DateConfig] = None) -> RuleResult:
    dates = dates or CONFIG.dates
    # Empty means the date could not be read.
    if value == "":
        return RuleResult(True, ["date_empty"])
    if parse_strict_date(value, dates) is None:
        return RuleResult(
            False,
            ["date_format"],
            f"{spec.label} must be in {dates.display} format or empty.",
        )
    return RuleResult(True, ["date_ok"])


def validate_field(spec: FieldSpec, value: Optional[str], dates: Optional[DateConfig] = None) -> RuleResult:
    value = "" if value is None else str(value)
    if spec.field_type == "date":
        return validate_date(spec, value, dates)
    if spec.required:
        return validate_required(spec, value)
    return RuleResult(True, ["text_ok"])


def field_errors(fields: PassportFields, dates: Optional[DateConfig] = None) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    for spec in iter_fields():
        result = validate_field(spec, getattr(fields, spec.key), dates)
        if not result.is_valid:
            errors[spec.key] = result.message or f"{spec.label} is invalid."
    return errors


def validate_passport_fields(
    fields: PassportFields, dates: Optional[DateConfig] = None
) -> ResultEnvelope[PassportFields]:
    errors = field_errors(fields, dates)
    if errors:
        return ResultEnvelope[PassportFields].failure("; ".join(errors.values()))
    return ResultEnvelope[PassportFields].success(fields)


def ensure_valid(fields: PassportFields, dates: Optional[DateConfig] = None) -> PassportFields:
    errors = field_errors(fields, dates)
    if errors:
        raise ValidationError(errors)
    return fields
