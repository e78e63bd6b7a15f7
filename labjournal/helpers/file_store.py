import os
from pathlib import Path
from typing import Optional, Protocol

from labjournal.commons.errors import StorageUnavailable, WriteFailed
from labjournal.commons.logger import logger


class RecordMedium(Protocol):
    def read_all(self) -> Optional[bytes]: ...

    def write_all(self, data: bytes) -> None: ...


class JsonFileStore:
    """
    Single JSON document on local disk. Writes go to ``<stem>_temp<suffix>``
    (blood_tests_temp.json) beside the target and are moved into place with
    os.replace, so a failed write never leaves the canonical file truncated.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self.tmp_path = self.path.with_name(self.path.stem + "_temp" + self.path.suffix)

    def read_all(self) -> Optional[bytes]:
        if not self.path.exists():
            return None
        try:
            return self.path.read_bytes()
        except OSError as ex:
            raise StorageUnavailable(f"cannot read {self.path}: {ex}") from ex

    def write_all(self, data: bytes) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.tmp_path, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(self.tmp_path, self.path)
        except OSError as ex:
            try:
                self.tmp_path.unlink(missing_ok=True)
            except OSError:
                logger.warning(f"Could not remove temp file {self.tmp_path}")
            raise WriteFailed(f"cannot write {self.path}: {ex}") from ex
        logger.debug(f"Wrote {len(data)} bytes to {self.path}")
