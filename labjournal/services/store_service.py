# labjournal/services/store_service.py
import asyncio
import uuid
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from labjournal.commons.errors import RecordNotFound
from labjournal.commons.logger import logger
from labjournal.commons.reconciler import same_day
from labjournal.helpers.file_store import RecordMedium
from labjournal.parsers.models import BloodTestRecord
from labjournal.validation.validators import decode_records, encode_records


def _newest_first(records: Iterable[BloodTestRecord]) -> List[BloodTestRecord]:
    return sorted(records, key=lambda r: r.date, reverse=True)


def _cutoff(days: Optional[int], today: Optional[date]) -> Optional[date]:
    if days is None:
        return None
    return (today or date.today()) - timedelta(days=days)


class StoreManager:
    """
    Owns the stored collection of blood-test records.

    Every mutation reloads the document, applies the change, writes the whole
    collection atomically and then refreshes ``records`` (newest first). The
    read-side views work on that cached list only. One asyncio.Lock serialises
    the load-modify-write sequences of concurrent callers.
    """

    def __init__(self, medium: RecordMedium):
        self.medium = medium
        self.records: List[BloodTestRecord] = []
        self._lock = asyncio.Lock()

    # ---------- persistence ----------
    def _read(self) -> List[BloodTestRecord]:
        return decode_records(self.medium.read_all() or b"")

    def _write(self, records: List[BloodTestRecord]) -> None:
        self.medium.write_all(encode_records(records))
        self.records = _newest_first(records)

    async def load_all(self) -> List[BloodTestRecord]:
        async with self._lock:
            self.records = _newest_first(self._read())
            return list(self.records)

    async def refresh(self) -> None:
        await self.load_all()

    async def save(self, record: BloodTestRecord) -> None:
        async with self._lock:
            records = self._read()
            idx = next((i for i, r in enumerate(records) if r.id == record.id), None)
            if idx is None:
                records.append(record)
            else:
                records[idx] = record
            self._write(records)
        logger.info(f"Record saved {record.id} ({record.date.isoformat()})")

    async def update(self, record: BloodTestRecord) -> None:
        async with self._lock:
            records = self._read()
            idx = next((i for i, r in enumerate(records) if r.id == record.id), None)
            if idx is None:
                raise RecordNotFound(record.id)
            records[idx] = record
            self._write(records)
        logger.info(f"Record updated {record.id}")

    async def delete(self, record_id: uuid.UUID) -> None:
        async with self._lock:
            records = self._read()
            kept = [r for r in records if r.id != record_id]
            if len(kept) == len(records):
                logger.debug(f"Delete of unknown record {record_id} ignored")
            self._write(kept)

    async def apply_import(
        self,
        records: Iterable[BloodTestRecord],
        replace_duplicates: bool = False,
        duplicates_to_replace: Iterable[BloodTestRecord] = (),
    ) -> int:
        """
        Append imported records. With ``replace_duplicates`` every stored record
        on the calendar day of one of ``duplicates_to_replace`` is removed first.
        Returns how many stored records were removed.
        """
        incoming = list(records)
        async with self._lock:
            stored = self._read()
            removed = 0
            if replace_duplicates:
                days = {d.date for d in duplicates_to_replace}
                kept = [r for r in stored if not any(same_day(r.date, d) for d in days)]
                removed = len(stored) - len(kept)
                stored = kept
            stored.extend(incoming)
            self._write(stored)
        logger.info(f"Import applied: {len(incoming)} added, {removed} replaced")
        return removed

    # ---------- read-side views ----------
    @property
    def latest_record(self) -> Optional[BloodTestRecord]:
        return self.records[0] if self.records else None

    def records_within(self, days: Optional[int], today: Optional[date] = None) -> List[BloodTestRecord]:
        cutoff = _cutoff(days, today)
        if cutoff is None:
            return list(self.records)
        return [r for r in self.records if r.date >= cutoff]

    def history(
        self, metric_key: str, within_days: Optional[int] = None, today: Optional[date] = None
    ) -> List[Tuple[date, float]]:
        points = [
            (r.date, r.value(metric_key))
            for r in self.records_within(within_days, today)
            if r.value(metric_key) is not None
        ]
        return sorted(points, key=lambda p: p[0])

    def average(
        self, metric_key: str, within_days: Optional[int] = None, today: Optional[date] = None
    ) -> Optional[float]:
        values = [v for _, v in self.history(metric_key, within_days, today)]
        if not values:
            return None
        return sum(values) / len(values)

    def minimum(
        self, metric_key: str, within_days: Optional[int] = None, today: Optional[date] = None
    ) -> Optional[float]:
        values = [v for _, v in self.history(metric_key, within_days, today)]
        return min(values) if values else None

    def maximum(
        self, metric_key: str, within_days: Optional[int] = None, today: Optional[date] = None
    ) -> Optional[float]:
        values = [v for _, v in self.history(metric_key, within_days, today)]
        return max(values) if values else None

    def metric_change(self, metric_key: str) -> Optional[float]:
        """Latest value minus the previous record's, when both records measured it."""
        if len(self.records) < 2:
            return None
        latest, previous = self.records[0].value(metric_key), self.records[1].value(metric_key)
        if latest is None or previous is None:
            return None
        return latest - previous

    def records_by_scheme(
        self, scheme: str, within_days: Optional[int] = None, today: Optional[date] = None
    ) -> List[BloodTestRecord]:
        wanted = (scheme or "").casefold()
        return [
            r
            for r in self.records_within(within_days, today)
            if r.tags.scheme and r.tags.scheme.casefold() == wanted
        ]

    def all_schemes(self) -> List[str]:
        seen: Dict[str, str] = {}
        for r in self.records:
            scheme = r.tags.scheme
            if scheme and scheme.casefold() not in seen:
                seen[scheme.casefold()] = scheme
        return sorted(seen.values())
