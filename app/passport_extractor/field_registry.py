from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .config import CONFIG


@dataclass(frozen=True)
class FieldSpec:
    key: str
    wire_name: str
    field_type: str
    required: bool
    label: str
    placeholder: str
    prompt_hint: str


def _date_placeholder() -> str:
    return CONFIG.dates.display


FIELDS: List[FieldSpec] = [
    FieldSpec(
        key="first_name",
        wire_name="firstName",
        field_type="name",
        required=True,
        label="First Name",
        placeholder="e.g. John",
        prompt_hint="The first (given) name of the passport holder.",
    ),
    FieldSpec(
        key="last_name",
        wire_name="lastName",
        field_type="name",
        required=True,
        label="Last Name",
        placeholder="e.g. Doe",
        prompt_hint="The last name (surname) of the passport holder.",
    ),
    FieldSpec(
        key="date_of_birth",
        wire_name="dateOfBirth",
        field_type="date",
        required=False,
        label="Date of Birth",
        placeholder=_date_placeholder(),
        prompt_hint=f"The date of birth of the passport holder ({_date_placeholder()}).",
    ),
    FieldSpec(
        key="passport_number",
        wire_name="passportNumber",
        field_type="passport_number",
        required=True,
        label="Passport Number",
        placeholder="e.g. A12345678",
        prompt_hint="The passport number.",
    ),
    FieldSpec(
        key="expiration_date",
        wire_name="expirationDate",
        field_type="date",
        required=False,
        label="Expiration Date",
        placeholder=_date_placeholder(),
        prompt_hint=f"The expiration date of the passport ({_date_placeholder()}).",
    ),
]


FIELD_REGISTRY: Dict[str, FieldSpec] = {field.key: field for field in FIELDS}
WIRE_NAMES: Dict[str, str] = {field.wire_name: field.key for field in FIELDS}
FIELD_ORDER: List[str] = [field.key for field in FIELDS]


def iter_fields() -> Iterable[FieldSpec]:
    return FIELDS


def get_field_spec(name: str) -> Optional[FieldSpec]:
    """Look a field up by attribute name or wire name."""
    spec = FIELD_REGISTRY.get(name)
    if spec is None and name in WIRE_NAMES:
        spec = FIELD_REGISTRY[WIRE_NAMES[name]]
    return spec


def require_field_spec(name: str) -> FieldSpec:
    spec = get_field_spec(name)
    if spec is None:
        raise KeyError(f"Unknown passport field: {name}")
    return spec


def field_registry_payload() -> Dict[str, object]:
    return {
        "fields": [
            {
                "key": field.key,
                "wire_name": field.wire_name,
                "type": field.field_type,
                "required": field.required,
                "label": field.label,
                "placeholder": field.placeholder,
            }
            for field in FIELDS
        ],
        "order": FIELD_ORDER,
        "date_format": CONFIG.dates.display,
    }
