"""Live index session: snapshot swapping and coalesced rebuilds."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Set, Tuple

from .config import REBUILD_DELAY_SECONDS, ScanOptions
from .design_index import empty_index
from .hierarchy import HierarchyBuilder
from .models import DesignIndex, HierarchyNode, HierarchyStats, ScanResult
from .parser import scan_project

logger = logging.getLogger(__name__)


class IndexSession:
    """Owns the current :class:`DesignIndex` for one project root.

    A rescan builds a complete new snapshot before swapping the reference,
    so readers holding the previous index never see a partial update.
    """

    def __init__(
        self,
        project_root: Path,
        options: Optional[ScanOptions] = None,
        defines: Optional[Iterable[str]] = None,
    ) -> None:
        self.project_root = project_root
        self.options = options or ScanOptions()
        self.defines: Set[str] = set(defines or ())
        self._lock = threading.Lock()
        self._index: DesignIndex = empty_index()
        self._last_result: Optional[ScanResult] = None
        self._scans_started = 0
        self._applied_scan = 0
        self.generation = 0

    @property
    def index(self) -> DesignIndex:
        with self._lock:
            return self._index

    @property
    def last_result(self) -> Optional[ScanResult]:
        with self._lock:
            return self._last_result

    def rescan(self) -> ScanResult:
        """Scan the project and install the result as the current snapshot.

        A scan that finishes after a later-started one has already been
        installed is returned but never replaces the newer snapshot.
        """
        with self._lock:
            self._scans_started += 1
            ticket = self._scans_started
        result = scan_project(self.project_root, self.options, self.defines)
        with self._lock:
            if ticket < self._applied_scan:
                logger.debug("Discarding stale scan #%d (current is #%d)", ticket, self._applied_scan)
                return result
            self._applied_scan = ticket
            self._index = result.index
            self._last_result = result
            self.generation += 1
        return result

    def hierarchy(self) -> Tuple[List[HierarchyNode], HierarchyStats]:
        builder = HierarchyBuilder(
            self.index,
            max_depth=self.options.max_hierarchy_depth,
            resolve=self.options.hierarchy_resolve,
            top_module=self.options.hierarchy_top_module,
        )
        forest = builder.build()
        return forest, builder.stats


class RebuildScheduler:
    """Coalesce bursts of rebuild requests into a single callback run.

    Every :meth:`request` restarts the delay, so the callback fires once,
    *delay* seconds after the last request of a burst. Runs never overlap:
    a timer that fires while the callback is still running marks the
    scheduler dirty, and exactly one more run follows the current one.
    """

    def __init__(
        self,
        callback: Callable[[], object],
        delay: float = REBUILD_DELAY_SECONDS,
    ) -> None:
        self.callback = callback
        self.delay = delay
        self.runs = 0
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._running = False
        self._dirty = False

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def request(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def flush(self) -> bool:
        """Run a pending rebuild now. Returns False when nothing was pending."""
        with self._lock:
            if self._timer is None:
                return False
            self._timer.cancel()
            self._timer = None
        self._run()
        return True

    def _fire(self) -> None:
        with self._lock:
            if self._timer is None or threading.current_thread() is not self._timer:
                return
            self._timer = None
        self._run()

    def _run(self) -> None:
        with self._lock:
            if self._running:
                self._dirty = True
                return
            self._running = True

        while True:
            self.runs += 1
            try:
                self.callback()
            except Exception as exc:
                logger.error("Rebuild failed: %s", exc, exc_info=True)
            with self._lock:
                if not self._dirty:
                    self._running = False
                    return
                self._dirty = False
