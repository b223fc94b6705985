from __future__ import annotations

from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class WireModel(BaseModel):
    """Snake_case attributes, camelCase on the wire; both accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def wire(self) -> dict:
        return self.model_dump(by_alias=True)


class PassportFields(WireModel):
    first_name: str = ""
    last_name: str = ""
    date_of_birth: str = ""
    passport_number: str = ""
    expiration_date: str = ""


class SuggestionSet(WireModel):
    first_name: List[str] = Field(default_factory=list)
    last_name: List[str] = Field(default_factory=list)
    date_of_birth: List[str] = Field(default_factory=list)
    passport_number: List[str] = Field(default_factory=list)
    expiration_date: List[str] = Field(default_factory=list)


class ResultEnvelope(BaseModel, Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, value: T) -> "ResultEnvelope[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> "ResultEnvelope[T]":
        return cls(ok=False, error=error)

    def wire(self) -> dict:
        if self.ok:
            value = self.value.wire() if isinstance(self.value, WireModel) else self.value
            return {"ok": True, "value": value}
        return {"ok": False, "error": self.error}


class SuggestRequest(BaseModel):
    fields: dict
    document: str


class FieldEdits(BaseModel):
    values: dict


class FieldChoice(BaseModel):
    field: str
    value: str


class FieldRef(BaseModel):
    field: str


class Notification(BaseModel):
    title: str
    description: str = ""
    variant: str = "default"


class FieldView(BaseModel):
    name: str
    wire_name: str
    label: str
    placeholder: str
    value: str
    mode: str = "input"
    options: List[str] = Field(default_factory=list)
