import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .base import strip_punctuation

_SCHEME_RE = re.compile(r"^[A-Z]+")
_CYCLE_RE = re.compile(r"C(\d+)")
_DAY_RE = re.compile(r"D(\d+)")


@dataclass(frozen=True)
class EventTag:
    """Structured view of an event label such as 'FOLFIRI C2 D11 化疗后'."""

    scheme: Optional[str] = None  # treatment protocol, e.g. FOLFIRI
    cycle: Optional[int] = None
    day: Optional[int] = None
    raw_tokens: Tuple[str, ...] = ()

    @classmethod
    def parse(cls, event: str) -> "EventTag":
        return parse_event(event)

    def display_text(self) -> str:
        parts: List[str] = []
        if self.scheme:
            parts.append(self.scheme)
        if self.cycle is not None:
            parts.append(f"C{self.cycle}")
        if self.day is not None:
            parts.append(f"D{self.day}")
        parts.extend(self.raw_tokens)
        return " ".join(parts)

    @property
    def is_empty(self) -> bool:
        return not (self.scheme or self.cycle is not None or self.day is not None or self.raw_tokens)


def parse_event(event: str) -> EventTag:
    text = event or ""

    scheme = None
    remaining = text
    m = _SCHEME_RE.match(text)
    if m:
        scheme = m.group(0)
        remaining = text[m.end():]

    cycle = None
    m = _CYCLE_RE.search(text)
    if m:
        cycle = int(m.group(1))

    day = None
    m = _DAY_RE.search(text)
    if m:
        day = int(m.group(1))

    remaining = _CYCLE_RE.sub("", remaining)
    remaining = _DAY_RE.sub("", remaining)

    tokens = [strip_punctuation(t) for t in remaining.split()]
    return EventTag(scheme=scheme, cycle=cycle, day=day, raw_tokens=tuple(t for t in tokens if t))
