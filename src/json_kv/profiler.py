"""Performance profiler for import operations."""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import psutil


@dataclass
class ImportMetrics:
    """Performance metrics for one import."""
    operation_name: str
    start_time: float
    end_time: float
    duration: float
    input_size: int
    records_written: int
    batches_committed: int
    memory_start_mb: float
    memory_peak_mb: float
    memory_end_mb: float
    throughput_mbps: float
    records_per_second: float


class PerformanceProfiler:
    """
    Tracks duration, memory and throughput of import operations.

    Memory is sampled from the current process with psutil; callers sample
    at batch boundaries so the peak reflects the live batch size.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.metrics_history: List[ImportMetrics] = []
        self.current_operation: Optional[str] = None
        self.start_time: Optional[float] = None
        self.start_memory: float = 0.0
        self.peak_memory: float = 0.0
        self.input_size = 0

    @staticmethod
    def _rss_mb() -> float:
        return psutil.Process().memory_info().rss / 1024 / 1024

    @contextmanager
    def profile_operation(self, operation_name: str, input_size: int = 0):
        """
        Context manager for profiling operations.

        The session is discarded if the body raises.
        """
        self.start_profiling(operation_name, input_size)
        try:
            yield self
        finally:
            if self.current_operation is not None:
                self.current_operation = None
                self.start_time = None

    def start_profiling(self, operation_name: str, input_size: int = 0) -> None:
        self.current_operation = operation_name
        self.start_time = time.time()
        self.input_size = input_size
        self.start_memory = self._rss_mb()
        self.peak_memory = self.start_memory
        self.logger.debug(f"Started profiling: {operation_name}")

    def sample_performance(self) -> None:
        """Sample current memory usage."""
        if not self.current_operation:
            return

        try:
            self.peak_memory = max(self.peak_memory, self._rss_mb())
        except psutil.Error as e:
            self.logger.warning(f"Performance sampling failed: {e}")

    def stop_profiling(self, records_written: int = 0, batches_committed: int = 0) -> ImportMetrics:
        """
        Stop profiling and return metrics.

        Raises:
            ValueError: If no profiling session is active
        """
        if not self.current_operation or not self.start_time:
            raise ValueError("No active profiling session")

        end_time = time.time()
        duration = end_time - self.start_time
        end_memory = self._rss_mb()
        self.peak_memory = max(self.peak_memory, end_memory)

        throughput = (self.input_size / 1024 / 1024) / duration if duration > 0 else 0.0
        rate = records_written / duration if duration > 0 else 0.0

        metrics = ImportMetrics(
            operation_name=self.current_operation,
            start_time=self.start_time,
            end_time=end_time,
            duration=duration,
            input_size=self.input_size,
            records_written=records_written,
            batches_committed=batches_committed,
            memory_start_mb=self.start_memory,
            memory_peak_mb=self.peak_memory,
            memory_end_mb=end_memory,
            throughput_mbps=throughput,
            records_per_second=rate,
        )
        self.metrics_history.append(metrics)

        self.logger.info(f"Performance Summary - {self.current_operation}:")
        self.logger.info(f"  Duration: {duration:.2f}s")
        self.logger.info(f"  Throughput: {throughput:.2f} MB/s ({rate:.0f} records/s)")
        self.logger.info(f"  Memory Peak: {self.peak_memory:.1f} MB")

        self.current_operation = None
        self.start_time = None
        return metrics

    def get_performance_summary(self) -> Dict[str, Any]:
        if not self.metrics_history:
            return {"total_operations": 0}

        return {
            "total_operations": len(self.metrics_history),
            "total_duration": sum(m.duration for m in self.metrics_history),
            "total_records": sum(m.records_written for m in self.metrics_history),
            "max_memory_peak_mb": max(m.memory_peak_mb for m in self.metrics_history),
        }
