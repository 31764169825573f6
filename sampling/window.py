"""Per-question sample window."""

import logging
import threading
from typing import Iterator, Optional, Tuple

from .sample import Sample

logger = logging.getLogger(__name__)


class SessionWindow:
    """
    Ordered, append-only samples of one question.

    Appends come from the sampler thread; readers take an immutable
    ``snapshot()`` and never hold the lock while aggregating.
    """

    def __init__(self, question_id: Optional[str] = None):
        self.question_id = question_id
        self._samples = []
        self._lock = threading.Lock()

    def append(self, sample: Sample):
        """
        Add a sample.

        Raises:
            ValueError: If the sample is older than the last one
        """
        with self._lock:
            if self._samples and sample.timestamp < self._samples[-1].timestamp:
                raise ValueError(
                    f"Sample at {sample.timestamp:.3f}s is older than the last sample "
                    f"({self._samples[-1].timestamp:.3f}s) in window {self.question_id!r}"
                )
            self._samples.append(sample)

    def snapshot(self) -> Tuple[Sample, ...]:
        with self._lock:
            return tuple(self._samples)

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)

    def __iter__(self) -> Iterator[Sample]:
        return iter(self.snapshot())

    def __repr__(self) -> str:
        return f"SessionWindow(question_id={self.question_id!r}, samples={len(self)})"
