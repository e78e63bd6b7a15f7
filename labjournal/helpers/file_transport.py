import asyncio
import concurrent.futures
import time
from pathlib import Path
from typing import Optional

from watchdog.events import PatternMatchingEventHandler
from watchdog.observers import Observer

from labjournal.commons.logger import logger


class FileWatcher:
    """Hands every import file dropped in ``inbox`` to an async callback on ``loop``."""

    def __init__(self, inbox: str, glob: str, on_file_async, loop: asyncio.AbstractEventLoop):
        self.inbox = Path(inbox)
        self.inbox.mkdir(parents=True, exist_ok=True)
        self.loop = loop
        self.on_file_async = on_file_async
        self.handler = PatternMatchingEventHandler(patterns=[glob], ignore_directories=True)
        self.handler.on_created = lambda e: self.submit(Path(e.src_path))
        self.handler.on_moved = lambda e: self.submit(Path(e.dest_path))
        self.observer = Observer()

    def submit(self, path: Path) -> Optional[concurrent.futures.Future]:
        # Already moved to archive/ or error/ by an earlier event
        if not path.exists():
            return None
        # Short wait for writers that are still flushing the file
        for _ in range(10):
            try:
                path.read_bytes()
                break
            except FileNotFoundError:
                return None
            except OSError:
                time.sleep(0.05)
        else:
            logger.warning(f"{path} still unreadable, handing it over anyway")
        future = asyncio.run_coroutine_threadsafe(self.on_file_async(str(path)), self.loop)
        future.add_done_callback(lambda f: self._report(path, f))
        return future

    @staticmethod
    def _report(path: Path, future: concurrent.futures.Future):
        if future.cancelled():
            logger.warning(f"Handling of {path} was cancelled")
            return
        ex = future.exception()
        if ex is not None:
            logger.opt(exception=ex).error(f"Unexpected failure with {path}: {ex}")

    def start(self):
        self.observer.schedule(self.handler, str(self.inbox), recursive=False)
        self.observer.start()

    def stop(self):
        self.observer.stop()
        self.observer.join()
