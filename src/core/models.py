# src/core/models.py — v2
"""Shared Pydantic building blocks for the on-disk records.

Every persisted record is written with camelCase JSON keys and UTC
timestamps; the Python side always works with snake_case fields.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Literal

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    SerializerFunctionWrapHandler,
    model_serializer,
)
from pydantic.alias_generators import to_camel

WcagLevel = Literal["A", "AA", "AAA"]


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # Records written by older tooling may carry naive timestamps.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys, populated by either name."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_json(self) -> str:
        """Serialize with on-disk key names."""
        return self.model_dump_json(by_alias=True, indent=2)


class AiCriteriaVerification(CamelModel):
    """Result of verifying one WCAG success criterion with the AI model.

    Unknown keys emitted by the AI step are kept so a cached result
    round-trips exactly. Absent related issue ids are left out of the
    JSON rather than written as null.
    """

    model_config = ConfigDict(extra="allow")

    criterion_id: str
    status: str
    confidence: int = Field(ge=0, le=100)
    reasoning: str
    related_issue_ids: list[str] | None = None

    @model_serializer(mode="wrap")
    def _omit_absent_issue_ids(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        data = handler(self)
        if self.related_issue_ids is None:
            data.pop("relatedIssueIds", None)
            data.pop("related_issue_ids", None)
        return data
