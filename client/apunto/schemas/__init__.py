# client/apunto/schemas/__init__.py
from __future__ import annotations

"""
Pydantic schemas for wire payloads and persisted records.

This module is the data contract layer. Field names follow Python
conventions; aliases carry the camelCase names used on the wire and in the
persisted history blob.

It is used by:
- apunto.services.analysis (request body, AnalysisResult decoding)
- apunto.services.history (HistoryItem persistence, remote record mapping)
- apunto.services.processing (capture boundary, history edits)
"""

import enum
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_LABEL = "Documento General"


def _text_or_empty(value):
    return value or ""


def _label_or_default(value):
    return value or DEFAULT_LABEL


def _text_items(value):
    if not isinstance(value, list):
        return value
    return [str(item) for item in value if item is not None]


# ---------- Analysis Schemas ----------


class Entity(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str = ""
    value: str = ""
    confidence: str = ""

    @field_validator("type", "value", "confidence", mode="before")
    @classmethod
    def _as_text(cls, value):
        return "" if value is None else str(value)


class DetectedInfo(BaseModel):
    """Structured breakdown of the analyzed document."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    document_type: str = Field(default="", alias="documentType")
    entities: List[Entity] = Field(default_factory=list)
    key_points: List[str] = Field(default_factory=list, alias="keyPoints")
    understanding: str = ""

    @field_validator("document_type", "understanding", mode="before")
    @classmethod
    def _blank_text(cls, value):
        return _text_or_empty(value)

    @field_validator("entities", mode="before")
    @classmethod
    def _blank_list(cls, value):
        return value or []

    @field_validator("key_points", mode="before")
    @classmethod
    def _key_point_texts(cls, value):
        return _text_items(value or [])


class AnalysisResult(BaseModel):
    """
    Output of one analysis call.

    The backend may omit any field or send nulls; defaults are applied here
    so callers never check for presence.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    extracted_text: str = Field(default="", alias="extractedText")
    summary: str = ""
    label: str = DEFAULT_LABEL
    detected_info: Optional[DetectedInfo] = Field(default=None, alias="detectedInfo")
    tags: Optional[List[str]] = None

    @field_validator("extracted_text", "summary", mode="before")
    @classmethod
    def _blank_text(cls, value):
        return _text_or_empty(value)

    @field_validator("label", mode="before")
    @classmethod
    def _default_label(cls, value):
        return _label_or_default(value)

    @field_validator("tags", mode="before")
    @classmethod
    def _tag_texts(cls, value):
        return _text_items(value)


class AnalyzeRequest(BaseModel):
    """Body of ``POST <base>/analyze``."""

    image: str
    description: str


# ---------- History Schemas ----------


class HistoryItemCreate(BaseModel):
    """A history record before the store assigns ``id`` and ``timestamp``."""

    model_config = ConfigDict(populate_by_name=True)

    image_uri: str = Field(default="", alias="imageUri")
    description: str = ""
    extracted_text: str = Field(default="", alias="extractedText")
    summary: str = ""
    label: str = DEFAULT_LABEL


class HistoryItem(HistoryItemCreate):
    id: str
    timestamp: int

    # User corrections
    edited_extracted_text: Optional[str] = Field(default=None, alias="editedExtractedText")
    edited_summary: Optional[str] = Field(default=None, alias="editedSummary")
    is_edited: Optional[bool] = Field(default=None, alias="isEdited")

    # True = liked, False = disliked, None = no feedback
    liked: Optional[bool] = None

    def to_storage(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class HistoryUpdate(BaseModel):
    """
    Partial update of a history record.

    Only fields explicitly passed are applied, so ``HistoryUpdate(liked=None)``
    clears the feedback while ``HistoryUpdate()`` changes nothing.
    """

    model_config = ConfigDict(populate_by_name=True)

    edited_extracted_text: Optional[str] = Field(default=None, alias="editedExtractedText")
    edited_summary: Optional[str] = Field(default=None, alias="editedSummary")
    liked: Optional[bool] = None

    def changes(self) -> dict:
        return {name: getattr(self, name) for name in self.model_fields_set}


# ---------- Remote History Schemas ----------


class RemoteHistoryRecord(BaseModel):
    """Record shape returned by ``GET <base>/history``."""

    id: str
    description: str = ""
    extracted_text: str = ""
    summary: str = ""
    label: str = DEFAULT_LABEL
    created_at: datetime

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value):
        return str(value) if value is not None else value

    @field_validator("description", "extracted_text", "summary", mode="before")
    @classmethod
    def _blank_text(cls, value):
        return _text_or_empty(value)

    @field_validator("label", mode="before")
    @classmethod
    def _default_label(cls, value):
        return _label_or_default(value)

    def to_history_item(self) -> HistoryItem:
        created_at = self.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return HistoryItem(
            id=self.id,
            image_uri="",
            description=self.description,
            extracted_text=self.extracted_text,
            summary=self.summary,
            label=self.label,
            timestamp=int(created_at.timestamp() * 1000),
        )


class RemoteHistoryResponse(BaseModel):
    history: List[RemoteHistoryRecord] = Field(default_factory=list)

    @field_validator("history", mode="before")
    @classmethod
    def _blank_list(cls, value):
        return value or []


# ---------- Capture Boundary ----------


class CaptureStatus(str, enum.Enum):
    CAPTURED = "CAPTURED"
    CANCELLED = "CANCELLED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    UNAVAILABLE = "UNAVAILABLE"


class CaptureOutcome(BaseModel):
    """Result handed over by the camera/gallery capability."""

    status: CaptureStatus
    image_uri: Optional[str] = None

    @property
    def captured(self) -> bool:
        return self.status is CaptureStatus.CAPTURED and bool(self.image_uri)
