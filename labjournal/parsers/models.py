# ===============================
# File: labjournal/parsers/models.py
# ===============================
import math
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Mapping, Optional

from labjournal.catalog.metrics import CATALOG, MetricDefinition, key_metrics, sort_key

from .event_tag import EventTag, parse_event


@dataclass
class Attachment:
    file_name: str
    file_path: str
    type: str  # image, pdf, ...
    id: uuid.UUID = field(default_factory=uuid.uuid4)


class BloodTestRecord:
    """
    One blood-test event: a calendar day, an optional event label and a sparse
    map of metric key -> value. Two records are the same record iff their ids
    match. ``tags`` always reflects ``event``; change both through update_event().
    """

    def __init__(
        self,
        date: date,
        event: str = "",
        values: Optional[Mapping[str, float]] = None,
        notes: Optional[str] = None,
        attachments: Optional[List[Attachment]] = None,
        id: Optional[uuid.UUID] = None,
    ):
        self.id: uuid.UUID = id or uuid.uuid4()
        # day granularity: a datetime is truncated to its calendar day
        self.date = date.date() if isinstance(date, datetime) else date
        self._event = event or ""
        self._tags = parse_event(self._event)
        self.values: Dict[str, float] = {}
        for key, value in (values or {}).items():
            self.set_value(key, value)
        self.notes = notes
        self.attachments = attachments

    @property
    def event(self) -> str:
        return self._event

    @property
    def tags(self) -> EventTag:
        return self._tags

    def update_event(self, new_event: str) -> None:
        event = new_event or ""
        tags = parse_event(event)
        self._event, self._tags = event, tags

    def value(self, key: str) -> Optional[float]:
        return self.values.get(key)

    def set_value(self, key: str, value: Optional[float]) -> None:
        if value is None:
            self.values.pop(key, None)
            return
        value = float(value)
        if not math.isfinite(value):
            raise ValueError(f"{key}: value must be finite, got {value!r}")
        self.values[key] = value

    def replace_values(self, values: Mapping[str, float]) -> None:
        checked: Dict[str, float] = {}
        for key, value in values.items():
            value = float(value)
            if not math.isfinite(value):
                raise ValueError(f"{key}: value must be finite, got {value!r}")
            checked[key] = value
        self.values = checked

    def present_keys(self) -> List[MetricDefinition]:
        return [CATALOG[k] for k in sorted(self.values, key=sort_key) if k in CATALOG]

    def key_metrics_summary(self) -> str:
        parts = []
        for definition in key_metrics():
            v = self.value(definition.key)
            parts.append(f"{definition.short_name}: {format_value(v) if v is not None else '--'}")
        return " | ".join(parts)

    def __eq__(self, other):
        if not isinstance(other, BloodTestRecord):
            return NotImplemented
        return self.id == other.id

    def __hash__(self):
        return hash(self.id)

    def __repr__(self):
        return (
            f"BloodTestRecord(id={self.id}, date={self.date.isoformat()}, "
            f"event={self._event!r}, values={len(self.values)})"
        )


def format_value(value: float) -> str:
    if value == math.floor(value):
        return f"{value:.0f}"
    return f"{value:.2f}"


@dataclass
class ParseInfo:
    record: BloodTestRecord
    unrecognized_keys: List[str] = field(default_factory=list)
    invalid_values: List[str] = field(default_factory=list)
    date_error: Optional[str] = None  # only set when dates are parsed strictly

    @property
    def is_usable(self) -> bool:
        return bool(self.record.values) and self.date_error is None


@dataclass
class ParseFailure:
    index: int  # 1-based position in the import payload
    reason: str
    details: List[str] = field(default_factory=list)


@dataclass
class ImportResult:
    new_records: List[BloodTestRecord] = field(default_factory=list)
    duplicate_records: List[BloodTestRecord] = field(default_factory=list)
    existing_records: List[BloodTestRecord] = field(default_factory=list)  # paired with duplicate_records
    failures: List[ParseFailure] = field(default_factory=list)

    @property
    def total_parsed(self) -> int:
        return len(self.new_records) + len(self.duplicate_records)

    @property
    def has_duplicates(self) -> bool:
        return bool(self.duplicate_records)

    @property
    def failed_count(self) -> int:
        return len(self.failures)
