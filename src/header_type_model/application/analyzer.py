#!/usr/bin/env python3

"""Batch analysis: parse, register, resolve, lay out and diff snapshots.

Files are lexed and parsed on a thread pool; each worker registers its
declarations straight into the registry. ``pool.map`` returning is the
barrier after which the snapshot is resolved.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from multiprocessing.pool import ThreadPool
from pathlib import Path

from ..domain.models.declarations import Diagnostic, Severity, TypeDeclaration
from ..domain.models.diff import SnapshotDiff, TypeDiff
from ..domain.models.layout import TypeLayout
from ..domain.services.diffing import ModelDiffer
from ..domain.services.layout import LayoutEngine
from ..domain.services.parsing import parse_source
from ..domain.services.registry import TypeRegistry
from ..infrastructure.config import AbiConfig
from ..infrastructure.logging import ProgressTracker, get_logger, log_timing

logger = get_logger(__name__)

HEADER_SUFFIXES = (".h", ".hh", ".hpp", ".hxx", ".inl")

Sources = Mapping[str, str] | Iterable[tuple[str, str]]


@dataclass
class AnalysisResult:
    """Type model of one snapshot plus every diagnostic produced for it."""

    snapshot: str
    declarations: list[TypeDeclaration] = field(default_factory=list)
    layouts: dict[str, TypeLayout] = field(default_factory=dict)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    file_count: int = 0

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.ERROR]

    def find(self, qualified_name: str) -> TypeDeclaration | None:
        """Find a declaration (nested ones included) by qualified name."""
        for declaration in self.declarations:
            for candidate in declaration.walk():
                if candidate.qualified_name == qualified_name:
                    return candidate
        return None


def collect_header_files(paths: Iterable[Path]) -> list[Path]:
    """
    Expand directories into the header files they contain.

    Args:
        paths: Files and/or directories

    Returns:
        Header files, directories expanded recursively in sorted order
    """
    files: list[Path] = []
    for path in paths:
        if path.is_dir():
            files.extend(sorted(p for p in path.rglob("*") if p.is_file() and p.suffix.lower() in HEADER_SUFFIXES))
        else:
            files.append(path)
    return files


class TypeModelAnalyzer:
    """Builds type models for snapshots and compares them."""

    def __init__(self, abi: AbiConfig | None = None, workers: int | None = None):
        """
        Initialize the analyzer.

        Args:
            abi: Target ABI used for layout inference
            workers: Thread count for parsing and resolution (None: serial)
        """
        self.abi = abi or AbiConfig()
        self.workers = workers
        self.registry = TypeRegistry(self.abi)
        self.layout_engine = LayoutEngine(self.registry, self.abi)
        self.differ = ModelDiffer(self.registry)
        self.progress = ProgressTracker(logger)
        self._results: dict[str, AnalysisResult] = {}

    @log_timing
    def analyze(self, sources: Sources, snapshot: str = "default") -> AnalysisResult:
        """
        Build the type model of one snapshot.

        Args:
            sources: filename -> text mapping, or (filename, text) pairs, in batch order
            snapshot: Snapshot identity

        Returns:
            AnalysisResult with declarations, layouts and diagnostics
        """
        items = list(sources.items()) if isinstance(sources, Mapping) else list(sources)
        logger.info(f"Analyzing {len(items)} file(s) into snapshot '{snapshot}'")

        with self.progress.track_operation(f"analyze {snapshot}"):
            jobs = [(index, filename, text, snapshot) for index, (filename, text) in enumerate(items)]
            with self.progress.track_operation("parse"):
                if self.workers and self.workers > 1 and len(jobs) > 1:
                    with ThreadPool(self.workers) as pool:
                        pool.map(self._parse_and_register, jobs)
                else:
                    for job in jobs:
                        self._parse_and_register(job)

            if not self.registry.has_snapshot(snapshot):
                # Empty batch: register nothing so the snapshot exists
                self.registry.register([], snapshot)

            with self.progress.track_operation("resolve"):
                diagnostics = self.registry.resolve(snapshot, self.workers)

            with self.progress.track_operation("layout"):
                layouts = self.layout_engine.layout_snapshot(snapshot)
                templates = self.layout_engine.layout_templates(snapshot)
            for layout in [*layouts.values(), *templates.values()]:
                diagnostics.extend(layout.diagnostics)

        self.progress.log_memory_usage()

        result = AnalysisResult(
            snapshot=snapshot,
            declarations=self.registry.declarations(snapshot),
            layouts=layouts,
            diagnostics=diagnostics,
            file_count=len(items),
        )
        self._results[snapshot] = result

        logger.info(
            f"Snapshot '{snapshot}': {len(result.declarations)} declaration(s), "
            f"{len(result.errors)} error(s), {len(result.diagnostics)} diagnostic(s)"
        )
        return result

    def analyze_paths(self, paths: Iterable[Path], snapshot: str = "default") -> AnalysisResult:
        """
        Read header files (directories are expanded) and analyze them.

        Raises:
            OSError: If a file cannot be read
        """
        files = collect_header_files(paths)
        sources = [(str(path), path.read_text(encoding="utf-8")) for path in files]
        return self.analyze(sources, snapshot)

    def _parse_and_register(self, job: tuple[int, str, str, str]) -> None:
        index, filename, text, snapshot = job
        parsed = parse_source(text, filename)
        self.registry.register(parsed.declarations, snapshot, index, parsed.diagnostics)
        self.progress.track_file(filename, len(parsed.declarations), failed=parsed.failed)

    def result(self, snapshot: str) -> AnalysisResult | None:
        return self._results.get(snapshot)

    def diff(self, old_snapshot: str, new_snapshot: str, qualified_name: str) -> TypeDiff:
        """Compare one type between two analyzed snapshots."""
        return self.differ.diff(old_snapshot, new_snapshot, qualified_name)

    def diff_snapshots(self, old_snapshot: str, new_snapshot: str) -> SnapshotDiff:
        """Compare every type of two analyzed snapshots."""
        return self.differ.diff_snapshots(old_snapshot, new_snapshot)
