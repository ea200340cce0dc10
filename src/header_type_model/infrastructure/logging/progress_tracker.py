#!/usr/bin/env python3

"""Progress tracking for batch analysis runs."""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from time import time

import psutil


class ProgressTracker:
    """
    Track and report batch analysis progress.

    Counts parsed files and declarations (safe to call from worker threads),
    times nested operations and logs process memory usage.
    """

    def __init__(self, logger: logging.Logger):
        """
        Initialize progress tracker.

        Args:
            logger: Logger instance for progress reporting
        """
        self.logger = logger
        self.start_time = time()
        self.file_count = 0
        self.failed_file_count = 0
        self.declaration_count = 0
        self.operation_stack: list[tuple[str, float]] = []
        self._lock = threading.Lock()

    @contextmanager
    def track_operation(self, operation_name: str) -> Iterator[None]:
        """
        Track a high-level operation with timing.

        Args:
            operation_name: Name of the operation being tracked

        Yields:
            None
        """
        start_time = time()
        self.operation_stack.append((operation_name, start_time))

        self.logger.debug(f"Starting operation: {operation_name}")

        try:
            yield
            elapsed = time() - start_time
            self.logger.debug(f"Completed operation: {operation_name} in {elapsed:.3f}s")
        except Exception as e:
            elapsed = time() - start_time
            self.logger.error(f"Failed operation: {operation_name} after {elapsed:.3f}s: {e}")
            raise
        finally:
            self.operation_stack.pop()

    def track_file(self, filename: str, declarations: int, failed: bool = False) -> None:
        """
        Record one parsed file.

        Args:
            filename: Name of the file
            declarations: Number of top-level declarations it produced
            failed: True when the file was aborted by a lexical error
        """
        with self._lock:
            self.file_count += 1
            self.declaration_count += declarations
            if failed:
                self.failed_file_count += 1
        self.logger.debug(f"Parsed {filename}: {declarations} declaration(s)")

    def report_summary(self) -> None:
        """Report final processing statistics."""
        total_time = time() - self.start_time
        rate = self.file_count / total_time if total_time > 0 else 0

        self.logger.info(
            f"Processing complete: {self.file_count} files "
            f"({self.failed_file_count} failed), {self.declaration_count} declarations "
            f"in {total_time:.2f}s ({rate:.1f} files/s)"
        )

    def get_current_context(self) -> str:
        """
        Get current operation context for logging.

        Returns:
            String describing current operation stack
        """
        if not self.operation_stack:
            return "idle"

        return " → ".join(op[0] for op in self.operation_stack)

    def log_memory_usage(self) -> None:
        """Log current resident memory of this process."""
        try:
            memory_mb = psutil.Process().memory_info().rss / 1024 / 1024
            self.logger.debug(f"Memory usage: {memory_mb:.1f} MB")
        except psutil.Error as e:
            self.logger.debug(f"Could not get memory usage: {e}")

    def reset(self) -> None:
        """Reset all counters and timers."""
        self.start_time = time()
        self.file_count = 0
        self.failed_file_count = 0
        self.declaration_count = 0
        self.operation_stack.clear()
