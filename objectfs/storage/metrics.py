"""
Transfer metrics shared by transport implementations.

Nanosecond-precision counters for upload/download throughput and latency.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict

from objectfs.core import constants as C


@dataclass(slots=True)
class TransferMetrics:
    """
    Counters for object store traffic.

    Not synchronised: transports update it from a single event loop.
    """
    # Operation counters
    put_count: int = 0
    part_count: int = 0
    complete_count: int = 0
    abort_count: int = 0
    get_count: int = 0
    head_count: int = 0
    delete_count: int = 0
    list_count: int = 0

    # Byte counters
    bytes_uploaded: int = 0
    bytes_downloaded: int = 0

    # Latency accumulators (nanoseconds)
    upload_latency_sum_ns: int = 0
    download_latency_sum_ns: int = 0

    # Error counters
    request_errors: int = 0
    not_found: int = 0

    @staticmethod
    def start() -> int:
        """Monotonic start mark for a latency measurement."""
        return time.perf_counter_ns()

    def record_put(self, size_bytes: int, start_ns: int) -> None:
        self.put_count += 1
        self.bytes_uploaded += size_bytes
        self.upload_latency_sum_ns += time.perf_counter_ns() - start_ns

    def record_part(self, size_bytes: int, start_ns: int) -> None:
        self.part_count += 1
        self.bytes_uploaded += size_bytes
        self.upload_latency_sum_ns += time.perf_counter_ns() - start_ns

    def record_download(self, size_bytes: int, start_ns: int) -> None:
        self.get_count += 1
        self.bytes_downloaded += size_bytes
        self.download_latency_sum_ns += time.perf_counter_ns() - start_ns

    def upload_throughput_mbps(self) -> float:
        """Average upload throughput in MB/s."""
        if self.upload_latency_sum_ns == 0:
            return 0.0
        seconds = self.upload_latency_sum_ns / C.NS_PER_S
        return (self.bytes_uploaded / 1_000_000) / seconds

    def download_throughput_mbps(self) -> float:
        """Average download throughput in MB/s."""
        if self.download_latency_sum_ns == 0:
            return 0.0
        seconds = self.download_latency_sum_ns / C.NS_PER_S
        return (self.bytes_downloaded / 1_000_000) / seconds

    def snapshot(self) -> Dict[str, Any]:
        return {
            "put_count": self.put_count,
            "part_count": self.part_count,
            "complete_count": self.complete_count,
            "abort_count": self.abort_count,
            "get_count": self.get_count,
            "head_count": self.head_count,
            "bytes_uploaded": self.bytes_uploaded,
            "bytes_downloaded": self.bytes_downloaded,
            "request_errors": self.request_errors,
            "upload_throughput_mbps": self.upload_throughput_mbps(),
        }
