"""Collision-safe output path allocation shared by all workers of a run."""

from __future__ import annotations

import threading
from pathlib import Path

from loguru import logger

from imgopt.exceptions import NameAllocationExhausted


class OutputNameAllocator:
    """Hands out output paths that clash with neither disk nor in-flight work.

    The allocator owns the run's ledger of claimed names. A candidate is
    free only if it does not exist on disk and has not been claimed, and
    both checks plus the claim happen under one lock. Create one allocator
    per run so independent runs (and tests) never share claims.

    Candidates for ``photo.jpg`` are ``photo.jpg``, ``photo_1.jpg``,
    ``photo_2.jpg``, ... The counter strictly increases, so allocation
    terminates unless ``max_attempts`` is set and reached.
    """

    def __init__(self, max_attempts: int | None = None) -> None:
        """
        Initialize allocator.

        Args:
            max_attempts: Upper bound on candidates tried per call.
                None (default) means unbounded.
        """
        if max_attempts is not None and max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self._claimed: set[Path] = set()
        self._lock = threading.Lock()

    @property
    def claimed(self) -> frozenset[Path]:
        """Snapshot of every path claimed so far."""
        with self._lock:
            return frozenset(self._claimed)

    def allocate(self, desired: Path) -> Path:
        """Claim and return a free path derived from ``desired``.

        Raises:
            NameAllocationExhausted: Only when ``max_attempts`` is set and
                every candidate within it is taken.
        """
        desired = Path(desired)
        with self._lock:
            attempt = 0
            while self.max_attempts is None or attempt < self.max_attempts:
                candidate = _candidate(desired, attempt)
                if candidate not in self._claimed and not candidate.exists():
                    self._claimed.add(candidate)
                    if attempt:
                        logger.debug(f"Name {desired.name} taken, using {candidate.name}")
                    return candidate
                attempt += 1
        raise NameAllocationExhausted(desired, attempt)

    def release(self, path: Path) -> None:
        """Give back a claim whose file was never written.

        Callers must only release a path they were handed and for which no
        file exists, otherwise the on-disk check still protects it.
        """
        with self._lock:
            self._claimed.discard(Path(path))


def _candidate(desired: Path, seq: int) -> Path:
    if seq == 0:
        return desired
    return desired.with_name(f"{desired.stem}_{seq}{desired.suffix}")
