import json
from datetime import date
from enum import Enum
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from labjournal.commons.errors import InvalidPayload
from labjournal.commons.logger import logger
from labjournal.parsers.base import DEFAULT_IGNORED_KEYS
from labjournal.parsers.fields import parse_fields
from labjournal.parsers.models import BloodTestRecord, ImportResult, ParseFailure, ParseInfo


class ImportPolicy(str, Enum):
    REPLACE_DUPLICATES = "replace"
    SKIP_DUPLICATES = "skip"


class _FieldPairs(list):
    """JSON object kept as ordered (key, value) pairs so repeated keys stay deterministic."""


def _load_payload(raw_text: str) -> Any:
    try:
        return json.loads(raw_text, object_pairs_hook=_FieldPairs)
    except (TypeError, ValueError) as ex:
        raise InvalidPayload(f"import payload is not valid JSON: {ex}") from ex


def _as_text(value: Any) -> str:
    # null means "not measured"; numbers keep their decimal text; anything else is
    # kept as JSON so it shows up in the diagnostics
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return repr(value) if isinstance(value, float) else str(value)
    return json.dumps(value, ensure_ascii=False)


def _failure_details(info: ParseInfo) -> List[str]:
    details = []
    if info.unrecognized_keys:
        details.append(f"Unrecognized fields: {', '.join(info.unrecognized_keys)}")
    if info.invalid_values:
        details.append(f"Invalid values: {', '.join(info.invalid_values)}")
    if not details:
        details.append("No usable metric found")
    return details


def same_day(a: date, b: date) -> bool:
    return a == b


class ImportReconciler:
    """
    Plans an import of lab sheets: parse every entry, drop the unusable ones as
    failures and split the rest into new records and same-day duplicates of
    records already stored. Never writes; the caller applies a policy.
    """

    def __init__(self, strict_dates: bool = False, ignored_keys: Iterable[str] = DEFAULT_IGNORED_KEYS):
        self.strict_dates = strict_dates
        self.ignored_keys = frozenset(ignored_keys)

    def normalize_payload(self, raw_text: str) -> Tuple[List[Tuple[int, Any]], bool]:
        """
        Return (1-based position, entry) pairs for a single object or an array of
        them, plus whether the payload was a single object.
        """
        payload = _load_payload(raw_text)
        if isinstance(payload, _FieldPairs):
            return [(1, payload)], True
        if isinstance(payload, list):
            return [(i, entry) for i, entry in enumerate(payload, start=1)], False
        raise InvalidPayload(f"expected a JSON object or array, got {type(payload).__name__}")

    def parse_entry(self, entry: Any, today: Optional[date] = None) -> Optional[ParseInfo]:
        if not isinstance(entry, _FieldPairs):
            return None
        pairs = [(str(k), _as_text(v)) for k, v in entry]
        return parse_fields(
            pairs, today=today, strict_dates=self.strict_dates, ignored_keys=self.ignored_keys
        )

    def plan_import(
        self,
        raw_text: str,
        existing_records: Sequence[BloodTestRecord],
        today: Optional[date] = None,
    ) -> ImportResult:
        entries, single = self.normalize_payload(raw_text)

        candidates: List[BloodTestRecord] = []
        failures: List[ParseFailure] = []
        for index, entry in entries:
            reason = "Record could not be parsed" if single else f"Record {index} could not be parsed"
            info = self.parse_entry(entry, today=today)
            if info is None:
                failures.append(
                    ParseFailure(index=index, reason=reason, details=["Entry is not a JSON object"])
                )
                continue
            if not info.is_usable:
                failures.append(ParseFailure(index=index, reason=reason, details=_failure_details(info)))
                logger.debug(f"Import entry {index} rejected: {failures[-1].details}")
                continue
            if info.unrecognized_keys or info.invalid_values:
                logger.debug(
                    f"Import entry {index}: unrecognized={info.unrecognized_keys} "
                    f"invalid={info.invalid_values}"
                )
            candidates.append(info.record)

        result = self.classify(candidates, existing_records)
        result.failures = failures
        logger.info(
            f"Import plan: {len(result.new_records)} new, {len(result.duplicate_records)} duplicate, "
            f"{len(failures)} failed"
        )
        return result

    def classify(
        self, candidates: Iterable[BloodTestRecord], existing_records: Sequence[BloodTestRecord]
    ) -> ImportResult:
        result = ImportResult()
        for record in candidates:
            match = next((e for e in existing_records if same_day(e.date, record.date)), None)
            if match is not None:
                result.duplicate_records.append(record)
                result.existing_records.append(match)
            else:
                result.new_records.append(record)
        return result
