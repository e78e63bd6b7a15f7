# labjournal/validation/validators.py
import datetime as dt
import json
import math
import uuid
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from labjournal.commons.errors import DecodeError, EncodingFailed
from labjournal.parsers.models import Attachment, BloodTestRecord


class StoredTags(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    scheme: Optional[str] = None
    cycle: Optional[int] = None
    day: Optional[int] = None
    raw_tokens: List[str] = Field(default_factory=list, alias="rawTokens")


class StoredAttachment(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: uuid.UUID
    file_name: str = Field(alias="fileName")
    file_path: str = Field(alias="filePath")
    type: str


class StoredRecord(BaseModel):
    """One element of the persisted JSON array."""

    id: uuid.UUID
    date: dt.date
    event: str = ""
    tags: Optional[StoredTags] = None
    values: Dict[str, float] = Field(default_factory=dict)
    notes: Optional[str] = None
    attachments: Optional[List[StoredAttachment]] = None

    @field_validator("date", mode="before")
    @classmethod
    def _day_only(cls, v):
        # Day granularity only: "YYYY-MM-DD", no time of day
        if isinstance(v, dt.date):
            return v
        if not isinstance(v, str) or len(v.strip()) != 10:
            raise ValueError(f"expected a YYYY-MM-DD date, got {v!r}")
        return v.strip()

    @field_validator("values")
    @classmethod
    def _finite(cls, v: Dict[str, float]):
        bad = [k for k, x in v.items() if not math.isfinite(x)]
        if bad:
            raise ValueError(f"non-finite values for {', '.join(bad)}")
        return v

    @classmethod
    def from_record(cls, record: BloodTestRecord) -> "StoredRecord":
        tags = record.tags
        return cls(
            id=record.id,
            date=record.date,
            event=record.event,
            tags=StoredTags(
                scheme=tags.scheme, cycle=tags.cycle, day=tags.day, raw_tokens=list(tags.raw_tokens)
            ),
            values=dict(record.values),
            notes=record.notes,
            attachments=(
                [
                    StoredAttachment(id=a.id, file_name=a.file_name, file_path=a.file_path, type=a.type)
                    for a in record.attachments
                ]
                if record.attachments is not None
                else None
            ),
        )

    def to_record(self) -> BloodTestRecord:
        # tags are a cache of the event label; always rebuilt from it
        attachments = (
            [
                Attachment(id=a.id, file_name=a.file_name, file_path=a.file_path, type=a.type)
                for a in self.attachments
            ]
            if self.attachments is not None
            else None
        )
        return BloodTestRecord(
            id=self.id,
            date=self.date,
            event=self.event,
            values=self.values,
            notes=self.notes,
            attachments=attachments,
        )


_DOCUMENT = TypeAdapter(List[StoredRecord])


def encode_records(records: Iterable[BloodTestRecord]) -> bytes:
    """Pretty-printed, key-sorted JSON array (diff friendly)."""
    try:
        docs = [StoredRecord.from_record(r).model_dump(mode="json", by_alias=True) for r in records]
        return json.dumps(docs, ensure_ascii=False, indent=2, sort_keys=True).encode("utf-8")
    except (ValidationError, TypeError, ValueError) as ex:
        raise EncodingFailed(f"could not encode records: {ex}") from ex


def decode_records(data: bytes) -> List[BloodTestRecord]:
    if not data or not data.strip():
        return []
    try:
        docs = _DOCUMENT.validate_json(data)
    except ValidationError as ex:
        raise DecodeError(f"stored document is corrupt: {ex}") from ex
    return [d.to_record() for d in docs]
