"""Verilog/SystemVerilog source scanning.

Pipeline per file::

    raw text -> sanitize -> preprocess (optional) -> extract modules

Files are processed strictly in the order given. One ``defines`` set is
threaded through the whole scan, so a ``define`` in an earlier file is
visible to ``ifdef`` in every later file. :func:`discover_files` sorts by
relative path, which makes that order reproducible between runs.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from .config import SKIP_DIRS, SUPPORTED_EXTENSIONS, ScanOptions
from .design_index import build_design_index
from .extractor import VerilogExtractor
from .keywords import build_denylist
from .models import ModuleDefinition, ScanResult
from .positions import LineIndex
from .preprocessor import preprocess
from .sanitizer import sanitize

logger = logging.getLogger(__name__)


# ===================================================================
# Abstract Parser Interface
# ===================================================================

class Parser(ABC):
    """Abstract base class for HDL source parsers."""

    @abstractmethod
    def parse_file(
        self,
        file_path: Path,
        source: Optional[str] = None,
        defines: Optional[Set[str]] = None,
    ) -> List[ModuleDefinition]:
        """Parse a single file into module definitions."""
        ...

    @abstractmethod
    def parse_files(
        self,
        files: Sequence[Path],
        defines: Optional[Iterable[str]] = None,
    ) -> ScanResult:
        """Parse *files* in the given order into one design index."""
        ...

    @abstractmethod
    def parse_project(self, defines: Optional[Iterable[str]] = None) -> ScanResult:
        """Discover and parse every source below *project_root*."""
        ...

    @abstractmethod
    def supports_language(self, language: str) -> bool:
        """Return True if this parser can handle *language*."""
        ...


# ===================================================================
# File discovery
# ===================================================================

def discover_files(project_root: Path, options: Optional[ScanOptions] = None) -> Tuple[List[Path], int]:
    """Return ``(files, skipped)`` for every HDL source below *project_root*.

    Files are sorted by relative path. Files above the configured size limit
    are left out and counted in *skipped*.
    """
    options = options or ScanOptions()
    limit = options.max_file_size_bytes
    found: List[Path] = []
    skipped = 0

    candidates = sorted(
        (p for p in project_root.rglob("*") if p.suffix.lower() in SUPPORTED_EXTENSIONS),
        key=lambda p: p.relative_to(project_root).as_posix(),
    )
    for path in candidates:
        rel_parts = path.relative_to(project_root).parts
        if any(part in SKIP_DIRS for part in rel_parts[:-1]):
            continue
        if not path.is_file():
            continue
        try:
            size = path.stat().st_size
        except OSError as exc:
            logger.warning("Cannot stat %s: %s", path, exc)
            skipped += 1
            continue
        if size > limit:
            logger.info("Skipping %s (%d bytes exceeds %.1f MB limit)", path, size, options.max_file_size_mb)
            skipped += 1
            continue
        found.append(path)
    return found, skipped


# ===================================================================
# Regex-backed parser
# ===================================================================

class RegexVerilogParser(Parser):
    """Structural parser built on the sanitizer, preprocessor and extractor.

    File identities in the resulting index are paths relative to
    *project_root* (POSIX separators) when the file lives below it, and
    absolute paths otherwise.
    """

    def __init__(self, project_root: Path, options: Optional[ScanOptions] = None) -> None:
        self.project_root = project_root
        self.options = options or ScanOptions()
        self.extractor = VerilogExtractor(build_denylist(self.options.extra_keywords))

    def supports_language(self, language: str) -> bool:
        return language in ("verilog", "systemverilog")

    def file_identity(self, file_path: Path) -> str:
        try:
            return file_path.relative_to(self.project_root).as_posix()
        except ValueError:
            return file_path.as_posix()

    # ------------------------------------------------------------------
    # Single file
    # ------------------------------------------------------------------

    def parse_text(self, text: str, file_id: str, defines: Set[str]) -> List[ModuleDefinition]:
        clean = sanitize(text)
        if self.options.enable_preprocess:
            clean = preprocess(clean, defines)
        return self.extractor.extract(clean, file_id, LineIndex(clean))

    def parse_file(
        self,
        file_path: Path,
        source: Optional[str] = None,
        defines: Optional[Set[str]] = None,
    ) -> List[ModuleDefinition]:
        """Parse one file; *defines* is updated in place when given.

        Raises:
            OSError: when *source* is not given and the file cannot be read.
        """
        if source is None:
            source = file_path.read_text(encoding="utf-8", errors="replace")
        if defines is None:
            defines = set()
        return self.parse_text(source, self.file_identity(file_path), defines)

    # ------------------------------------------------------------------
    # Many files
    # ------------------------------------------------------------------

    def parse_files(
        self,
        files: Sequence[Path],
        defines: Optional[Iterable[str]] = None,
    ) -> ScanResult:
        active: Set[str] = set(defines or ())
        modules: List[ModuleDefinition] = []
        scanned: List[str] = []
        failed = 0

        for file_path in files:
            try:
                source = file_path.read_text(encoding="utf-8", errors="replace")
            except OSError as exc:
                logger.warning("Failed to read %s: %s", file_path, exc)
                failed += 1
                continue
            file_id = self.file_identity(file_path)
            scanned.append(file_id)
            found = self.parse_text(source, file_id, active)
            logger.debug("%s: %d module(s)", file_path, len(found))
            modules.extend(found)

        index = build_design_index(modules)
        duplicates = index.duplicate_names()
        if duplicates:
            logger.info("%d module name(s) defined more than once", len(duplicates))
        logger.info("Indexed %d module(s) from %d file(s)", len(modules), len(scanned))
        return ScanResult(
            index=index,
            files=scanned,
            files_scanned=len(scanned),
            files_failed=failed,
            defines=active,
        )

    def parse_project(self, defines: Optional[Iterable[str]] = None) -> ScanResult:
        files, skipped = discover_files(self.project_root, self.options)
        result = self.parse_files(files, defines)
        result.files_skipped = skipped
        return result


def scan_project(
    project_root: Path,
    options: Optional[ScanOptions] = None,
    defines: Optional[Iterable[str]] = None,
) -> ScanResult:
    """Scan *project_root* into a fresh :class:`ScanResult`."""
    return RegexVerilogParser(project_root, options).parse_project(defines)
