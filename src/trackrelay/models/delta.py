"""Signal K delta envelope.

Only the fields the sample feed needs are modelled; everything else is
ignored.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from trackrelay.ingestion.normalize import safe_str


class DeltaValue(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    path: str = ""
    value: Any = None


class DeltaUpdate(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    source: str | None = Field(default=None, alias="$source")
    timestamp: str | None = None
    values: list[DeltaValue] = Field(default_factory=list)

    @field_validator("source", "timestamp", mode="before")
    @classmethod
    def _coerce_str(cls, value: Any) -> str | None:
        return safe_str(value)


class Delta(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    context: str | None = None
    updates: list[DeltaUpdate] = Field(default_factory=list)
