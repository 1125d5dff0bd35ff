"""End-to-end tests for the conversion pipeline with real images."""

from __future__ import annotations

import asyncio
import random
from pathlib import Path

import pytest
from PIL import Image

from imgopt.converter import ConversionOptions
from imgopt.exceptions import DiscoveryError, UnsupportedFormatError
from imgopt.pipeline import execute_run, prepare_run, run_conversion
from imgopt.results import FailureReason


class RecordingReporter:
    def __init__(self) -> None:
        self.kinds: list[str] = []

    def on_outcome(self, outcome, completed, total) -> None:
        self.kinds.append("outcome")

    def on_complete(self, summary) -> None:
        self.kinds.append("complete")


def _build_mixed_tree(root: Path, make_image) -> int:
    """Nested tree with colliding names and one corrupt file. Returns file count."""
    count = 0
    for sub in ["", "trip", "trip/day1", "family"]:
        make_image(root / sub / "img.png")
        make_image(root / sub / "photo.jpg", size=(30, 20))
        count += 2
    broken = root / "trip" / "broken.webp"
    broken.write_bytes(b"RIFF\x00\x00\x00\x00WEBPnope")
    return count + 1


class TestScenarios:
    def test_mixed_directory_to_jpg(self, tmp_path: Path, make_image) -> None:
        root = tmp_path / "in"
        make_image(root / "a.png")
        make_image(root / "b.heic")
        (root / "c.txt").write_text("text")

        plan = prepare_run(root, "jpg")
        assert {p.name for p in plan.tasks} == {"a.png", "b.heic"}

        summary = run_conversion(root, "jpg")

        assert summary.success_count == 2
        assert summary.failure_count == 0
        assert sorted(p.name for p in (root / "jpg").iterdir()) == ["a.jpg", "b.jpg"]
        for out in summary.outputs:
            with Image.open(out) as img:
                assert img.format == "JPEG"

    def test_same_name_in_two_subdirectories(self, tmp_path: Path, make_image) -> None:
        root = tmp_path / "in"
        make_image(root / "x" / "img.png", color=(255, 0, 0))
        make_image(root / "y" / "img.png", color=(0, 0, 255))

        summary = run_conversion(root, "png", recursive=True, workers=2)

        assert summary.success_count == 2
        assert {p.name for p in summary.outputs} == {"img.png", "img_1.png"}
        assert len(set(summary.outputs)) == 2

    def test_corrupted_file(self, tmp_path: Path, make_image, corrupt_image: Path) -> None:
        root = corrupt_image.parent
        make_image(root / "good1.png")
        make_image(root / "good2.jpg")

        summary = run_conversion(root, "webp", workers=3)

        assert summary.success_count == 2
        assert summary.failure_count == 1
        assert summary.failed_paths == (corrupt_image.resolve(),)
        assert summary.failures[0].reason is FailureReason.DECODE_ERROR
        assert not (root / "webp" / "broken.webp").exists()
        assert len(list((root / "webp").iterdir())) == 2


class TestProperties:
    def test_counts_add_up_and_outputs_unique(self, tmp_path: Path, make_image) -> None:
        root = tmp_path / "in"
        total = _build_mixed_tree(root, make_image)

        summary = run_conversion(root, "jpg", recursive=True, workers=4)

        assert summary.total == total
        assert summary.success_count + summary.failure_count == total
        assert summary.failure_count == 1
        assert len(set(summary.outputs)) == len(summary.outputs)
        assert all(p.exists() for p in summary.outputs)

    def test_worker_count_does_not_change_counts(
        self, tmp_path: Path, make_image
    ) -> None:
        results = []
        for workers in (1, 8):
            root = tmp_path / f"run{workers}"
            _build_mixed_tree(root, make_image)
            summary = run_conversion(root, "png", recursive=True, workers=workers)
            results.append((summary.success_count, summary.failure_count))

        assert results[0] == results[1]

    def test_shuffled_submission_order(self, tmp_path: Path, make_image) -> None:
        counts = []
        for seed in (1, 2, 3):
            root = tmp_path / f"run{seed}"
            _build_mixed_tree(root, make_image)
            plan = prepare_run(root, "jpg", recursive=True)
            random.Random(seed).shuffle(plan.tasks)

            summary = asyncio.run(execute_run(plan, workers=4))

            counts.append((summary.success_count, summary.failure_count))
            assert len(set(summary.outputs)) == summary.success_count

        assert len(set(counts)) == 1

    def test_many_collisions_under_load(self, tmp_path: Path, make_image) -> None:
        root = tmp_path / "in"
        for i in range(24):
            make_image(root / f"d{i}" / "img.png", size=(8, 8))

        summary = run_conversion(root, "jpg", recursive=True, workers=8)

        assert summary.success_count == 24
        names = {p.name for p in summary.outputs}
        assert len(names) == 24
        assert "img.jpg" in names

    def test_reporter_sees_events_then_one_summary(
        self, tmp_path: Path, make_image
    ) -> None:
        root = tmp_path / "in"
        for name in ["a.png", "b.png", "c.png"]:
            make_image(root / name)
        reporter = RecordingReporter()

        run_conversion(root, "jpg", reporter=reporter, workers=2)

        assert reporter.kinds == ["outcome"] * 3 + ["complete"]


class TestRunBehavior:
    def test_unsupported_format_fails_before_any_work(self, image_dir: Path) -> None:
        with pytest.raises(UnsupportedFormatError):
            run_conversion(image_dir, "gif")

        assert not (image_dir / "gif").exists()

    def test_missing_root(self, tmp_path: Path) -> None:
        with pytest.raises(DiscoveryError):
            run_conversion(tmp_path / "missing", "jpg")

    def test_rerun_skips_own_output_and_renames(self, image_dir: Path) -> None:
        first = run_conversion(image_dir, "jpg", recursive=True)
        second = run_conversion(image_dir, "jpg", recursive=True)

        assert first.total == second.total == 2
        outputs = sorted(p.name for p in (image_dir / "jpg").iterdir())
        assert outputs == ["a.jpg", "a_1.jpg", "b.jpg", "b_1.jpg"]

    def test_custom_output_dir_and_options(self, tmp_path: Path, make_image) -> None:
        root = tmp_path / "in"
        make_image(root / "wide.png", size=(300, 100))
        out = tmp_path / "elsewhere"

        summary = run_conversion(
            root, "png", output_dir=out, options=ConversionOptions(max_dimension=60)
        )

        with Image.open(summary.outputs[0]) as img:
            assert img.size == (60, 20)
        assert summary.outputs[0].parent == out.resolve()

    def test_copy_failed(self, corrupt_image: Path, make_image) -> None:
        root = corrupt_image.parent
        make_image(root / "ok.png")

        summary = run_conversion(root, "jpg", copy_failed=True)

        assert summary.failure_count == 1
        assert (root / "errors" / "broken.png").read_bytes() == corrupt_image.read_bytes()

    def test_empty_directory(self, tmp_path: Path) -> None:
        summary = run_conversion(tmp_path, "webp")

        assert summary.total == 0
        assert summary.all_succeeded
        assert (tmp_path / "webp").is_dir()
