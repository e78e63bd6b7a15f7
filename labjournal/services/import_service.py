# labjournal/services/import_service.py
import asyncio
import json
import re
import shutil
from dataclasses import asdict, dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Dict, Optional

from labjournal.commons.errors import InvalidPayload, LabJournalError
from labjournal.commons.logger import logger
from labjournal.commons.reconciler import ImportPolicy, ImportReconciler
from labjournal.helpers.file_transport import FileWatcher
from labjournal.parsers.models import BloodTestRecord, ImportResult
from labjournal.services.store_service import StoreManager


@dataclass
class ImportSummary:
    imported: int = 0  # new records written
    replaced: int = 0  # duplicates written over same-day records
    skipped: int = 0  # duplicates left out
    failed: int = 0  # entries that could not be parsed

    def message(self) -> str:
        parts = [f"{self.imported} new record(s) imported"]
        if self.replaced:
            parts.append(f"{self.replaced} duplicate(s) replaced")
        if self.skipped:
            parts.append(f"{self.skipped} duplicate(s) skipped")
        if self.failed:
            parts.append(f"{self.failed} failed")
        return ", ".join(parts)


def generate_report_filename(source: str, extension: str = "json") -> str:
    """
    Report name for an inbox file, timestamped for natural ordering, e.g.
    20260118-090512-123456_labs_january.report.json
    """
    ts = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
    base_name = Path(source).stem
    safe_base = re.sub(r"[^\w\-]", "_", base_name)
    return f"{ts}_{safe_base}.report.{extension}"


def _policy(value) -> ImportPolicy:
    return value if isinstance(value, ImportPolicy) else ImportPolicy(value)


class ImportService:
    """
    Import workflow on top of the reconciler and the store: plan against a
    fresh snapshot, apply the caller's duplicate policy, and the same thing for
    files dropped in an inbox folder.
    """

    def __init__(
        self,
        store: StoreManager,
        reconciler: Optional[ImportReconciler] = None,
        paths: Optional[Dict[str, str]] = None,
    ):
        self.store = store
        self.reconciler = reconciler or ImportReconciler()
        self.paths = paths or {}
        self._lock = asyncio.Lock()

    async def plan(self, raw_text: str, today: Optional[date] = None) -> ImportResult:
        existing = await self.store.load_all()
        return self.reconciler.plan_import(raw_text, existing, today=today)

    async def apply(self, result: ImportResult, policy=ImportPolicy.SKIP_DUPLICATES) -> ImportSummary:
        policy = _policy(policy)
        summary = ImportSummary(failed=result.failed_count)
        if policy is ImportPolicy.REPLACE_DUPLICATES:
            records = result.new_records + result.duplicate_records
            if records:
                await self.store.apply_import(
                    records, replace_duplicates=True, duplicates_to_replace=result.duplicate_records
                )
            summary.imported = len(result.new_records)
            summary.replaced = len(result.duplicate_records)
        else:
            if result.new_records:
                await self.store.apply_import(result.new_records)
            summary.imported = len(result.new_records)
            summary.skipped = len(result.duplicate_records)
        logger.info(f"Import ({policy.value}): {summary.message()}")
        return summary

    async def import_text(
        self, raw_text: str, policy=ImportPolicy.SKIP_DUPLICATES, today: Optional[date] = None
    ) -> ImportSummary:
        async with self._lock:
            result = await self.plan(raw_text, today=today)
            return await self.apply(result, policy)

    async def import_from_json(self, raw_text: str, today: Optional[date] = None) -> Optional[BloodTestRecord]:
        """
        One-shot import: new records when there are any, otherwise the duplicates
        replacing their same-day records. Returns the first record written.
        """
        async with self._lock:
            result = await self.plan(raw_text, today=today)
            if result.new_records:
                await self.store.apply_import(result.new_records)
                return result.new_records[0]
            if result.duplicate_records:
                await self.store.apply_import(
                    result.duplicate_records,
                    replace_duplicates=True,
                    duplicates_to_replace=result.duplicate_records,
                )
                return result.duplicate_records[0]
            return None

    # ---------- inbox ----------
    def _move(self, src: Path, folder_key: str) -> Path:
        dst_dir = Path(self.paths[folder_key])
        dst_dir.mkdir(parents=True, exist_ok=True)
        dst = dst_dir / src.name
        shutil.move(str(src), dst)
        return dst

    async def process_file(self, path: str, policy=ImportPolicy.SKIP_DUPLICATES) -> Optional[ImportSummary]:
        src = Path(path)
        if not src.exists():
            return None
        try:
            text = src.read_text(encoding="utf-8")
            summary = await self.import_text(text, policy)
        except (InvalidPayload, UnicodeDecodeError) as ex:
            # Not a lab-sheet payload: park it in error/ and keep going
            dst = self._move(src, "error")
            logger.error(f"Import file rejected {src.name}: {ex}. Moved to {dst}")
            return None
        except LabJournalError:
            # Store trouble (unreadable or corrupt document, failed write): the
            # sheet is fine, leave it in the inbox for the next pass
            logger.exception(f"Import of {src.name} failed, left in inbox")
            return None

        report = Path(self.paths["archive"]) / generate_report_filename(src.name)
        report.parent.mkdir(parents=True, exist_ok=True)
        report.write_text(json.dumps(asdict(summary), ensure_ascii=False, indent=2), encoding="utf-8")
        dst = self._move(src, "archive")
        logger.info(f"Import file processed {src.name}: {summary.message()}. Archived to {dst}")
        return summary

    async def process_backlog(self, glob_pat: str, policy=ImportPolicy.SKIP_DUPLICATES) -> int:
        inbox = Path(self.paths["inbox"])
        files = sorted(inbox.glob(glob_pat))
        if not files:
            return 0
        logger.info(f"Backlog: {len(files)} file(s) in {inbox}")
        for f in files:
            # One bad file must not stop the rest of the backlog
            try:
                await self.process_file(str(f), policy)
            except Exception as ex:
                logger.exception(f"Unexpected failure with {f}: {ex}")
        return len(files)

    async def run_file_mode(
        self,
        glob_pat: str,
        policy=ImportPolicy.SKIP_DUPLICATES,
        stop_event: Optional[asyncio.Event] = None,
    ):
        loop = asyncio.get_running_loop()
        await self.process_backlog(glob_pat, policy)

        watcher = FileWatcher(
            self.paths["inbox"], glob_pat, lambda p: self.process_file(p, policy), loop
        )
        watcher.start()
        logger.info(f"Watching {self.paths['inbox']} for lab sheets...")
        try:
            await (stop_event or asyncio.Event()).wait()
        finally:
            watcher.stop()
