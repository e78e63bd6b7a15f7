import math
import re
import unicodedata
from typing import Iterable, Iterator, Mapping, Optional, Tuple, Union

EVENT_KEY = "EVENT"
DATE_KEY = "日期"
EMPTY_PLACEHOLDER = "-"

DEFAULT_IGNORED_KEYS = frozenset({"IGNORE"})

RawFields = Union[Mapping[str, str], Iterable[Tuple[str, str]]]

_NUMBER_RE = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")


def _iter_pairs(raw: RawFields) -> Iterator[Tuple[str, str]]:
    """Mappings yield their items; anything else is taken as ordered (key, value) pairs."""
    if isinstance(raw, Mapping):
        return iter(raw.items())
    return iter(raw)


def _trim(val: Optional[str]) -> str:
    return val.strip() if val else ""


def is_blank(val: str) -> bool:
    return val == "" or val == EMPTY_PLACEHOLDER


def parse_number(text: str) -> Optional[float]:
    cleaned = _trim(text)
    if not _NUMBER_RE.fullmatch(cleaned):
        return None
    value = float(cleaned)
    if not math.isfinite(value):
        return None
    return value


def strip_punctuation(token: str) -> str:
    start, end = 0, len(token)
    while start < end and unicodedata.category(token[start]).startswith("P"):
        start += 1
    while end > start and unicodedata.category(token[end - 1]).startswith("P"):
        end -= 1
    return token[start:end]
