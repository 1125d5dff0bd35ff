"""Tests for OutputNameAllocator."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from imgopt.allocator import OutputNameAllocator
from imgopt.exceptions import NameAllocationExhausted


class TestAllocate:
    """Single-threaded allocation behavior."""

    def test_free_name_is_returned_unchanged(self, tmp_path: Path) -> None:
        allocator = OutputNameAllocator()

        assert allocator.allocate(tmp_path / "photo.jpg") == tmp_path / "photo.jpg"

    def test_existing_file_gets_counter_suffix(self, tmp_path: Path) -> None:
        (tmp_path / "photo.jpg").write_bytes(b"x")
        allocator = OutputNameAllocator()

        assert allocator.allocate(tmp_path / "photo.jpg") == tmp_path / "photo_1.jpg"

    def test_claimed_name_is_not_reused(self, tmp_path: Path) -> None:
        allocator = OutputNameAllocator()
        desired = tmp_path / "photo.jpg"

        paths = [allocator.allocate(desired) for _ in range(3)]

        assert paths == [
            tmp_path / "photo.jpg",
            tmp_path / "photo_1.jpg",
            tmp_path / "photo_2.jpg",
        ]
        assert allocator.claimed == frozenset(paths)

    def test_skips_both_disk_and_claims(self, tmp_path: Path) -> None:
        allocator = OutputNameAllocator()
        allocator.allocate(tmp_path / "photo.jpg")
        (tmp_path / "photo_1.jpg").write_bytes(b"x")

        assert allocator.allocate(tmp_path / "photo.jpg") == tmp_path / "photo_2.jpg"

    def test_release_frees_the_name(self, tmp_path: Path) -> None:
        allocator = OutputNameAllocator()
        first = allocator.allocate(tmp_path / "photo.jpg")

        allocator.release(first)

        assert allocator.allocate(tmp_path / "photo.jpg") == first

    def test_instances_do_not_share_claims(self, tmp_path: Path) -> None:
        desired = tmp_path / "photo.jpg"

        assert OutputNameAllocator().allocate(desired) == desired
        assert OutputNameAllocator().allocate(desired) == desired

    def test_bounded_attempts_exhaust(self, tmp_path: Path) -> None:
        allocator = OutputNameAllocator(max_attempts=2)
        allocator.allocate(tmp_path / "photo.jpg")
        allocator.allocate(tmp_path / "photo.jpg")

        with pytest.raises(NameAllocationExhausted) as exc_info:
            allocator.allocate(tmp_path / "photo.jpg")
        assert exc_info.value.attempts == 2

    def test_invalid_max_attempts(self) -> None:
        with pytest.raises(ValueError):
            OutputNameAllocator(max_attempts=0)


class TestConcurrentAllocate:
    """Check-and-claim must be atomic across threads."""

    def test_many_threads_same_name_all_distinct(self, tmp_path: Path) -> None:
        allocator = OutputNameAllocator()
        desired = tmp_path / "img.png"
        results: list[Path] = []
        results_lock = threading.Lock()
        barrier = threading.Barrier(16)

        def worker() -> None:
            barrier.wait()
            for _ in range(25):
                path = allocator.allocate(desired)
                with results_lock:
                    results.append(path)

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(results) == 16 * 25
        assert len(set(results)) == len(results)
        assert desired in results
