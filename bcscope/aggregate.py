"""
Fan the scope resolver out over every discovered program.

A fixed pool of worker threads drains one bounded queue that the caller
fills once and then closes with a sentinel per worker. Results are appended
under a single lock. The first failure in any worker stops the run and is
re-raised to the caller once every worker has exited.
"""

import queue
import threading
from typing import Dict, List, Optional

from bcscope.errors import ConfigError, ParseError
from bcscope.programs import list_programs
from bcscope.resolver import resolve_scope
from bcscope.scope import ProgramData
from bcscope.sync_common import log

_DONE = object()


class Aggregator:
    def __init__(self, session, token: str, categories: str, concurrency: int, skip_broken: bool = False):
        if concurrency < 1:
            raise ConfigError(f"concurrency must be >= 1 (got {concurrency})")
        self.session = session
        self.token = token
        self.categories = categories
        self.concurrency = concurrency
        self.skip_broken = skip_broken

        self.programs: List[ProgramData] = []
        self.skipped: List[str] = []
        self.lock = threading.Lock()
        self.stop = threading.Event()
        self.error: Optional[BaseException] = None

    def _fail(self, exc: BaseException) -> None:
        with self.lock:
            if self.error is None:
                self.error = exc
        self.stop.set()

    def _worker(self, handles: "queue.Queue", names: Dict[str, str]) -> None:
        while True:
            handle = handles.get()
            if handle is _DONE:
                return
            if self.stop.is_set():
                continue
            try:
                pdata = resolve_scope(self.session, handle, self.categories, self.token, names.get(handle, ""))
            except ParseError as e:
                if not self.skip_broken:
                    self._fail(e)
                    continue
                log(f"[WARN] skipping {handle}: {e}")
                with self.lock:
                    self.skipped.append(handle)
                continue
            except Exception as e:
                self._fail(e)
                continue

            with self.lock:
                self.programs.append(pdata)

    def _put(self, handles: "queue.Queue", item) -> bool:
        # a full queue with dead workers must not block the producer forever
        while not self.stop.is_set():
            try:
                handles.put(item, timeout=0.2)
                return True
            except queue.Full:
                continue
        return False

    def run(self, paths: List[str], names: Dict[str, str]) -> List[ProgramData]:
        handles: "queue.Queue" = queue.Queue(maxsize=self.concurrency)
        workers = [
            threading.Thread(target=self._worker, args=(handles, names), name=f"scope-worker-{i}", daemon=True)
            for i in range(self.concurrency)
        ]
        for w in workers:
            w.start()

        for path in paths:
            if not self._put(handles, path):
                break

        # sentinels are always delivered; workers that saw stop just drain
        for _ in workers:
            handles.put(_DONE)
        for w in workers:
            w.join()

        if self.error is not None:
            raise self.error
        return self.programs


def collect_all(session, token: str, paths: List[str], names: Dict[str, str], categories: str,
                concurrency: int, skip_broken: bool = False) -> List[ProgramData]:
    return Aggregator(session, token, categories, concurrency, skip_broken).run(paths, names)


def get_all_programs_scope(session, token: str, categories: str = "all", concurrency: int = 3,
                           engagement_category: str = "bug_bounty", private_only: bool = False,
                           skip_broken: bool = False) -> List[ProgramData]:
    paths, names = list_programs(session, token, engagement_category, private_only)
    log(f"Fetching {len(paths)} programs...")
    return collect_all(session, token, paths, names, categories, concurrency, skip_broken)
