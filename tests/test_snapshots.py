"""Tests for snapshot persistence and baseline resolution."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from performanalyzer.errors import StorageError
from performanalyzer.snapshots import SnapshotStore, branch_slug
from tests.helpers_snapshots import make_result, make_snapshot


def test_save_then_load_by_id(tmp_path: Path) -> None:
    store = SnapshotStore(tmp_path / "snaps")
    snapshot = make_snapshot(make_result("a.ts", high=1))

    path = store.save(snapshot)
    assert path == tmp_path / "snaps" / f"snapshot-{snapshot.id}.json"
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["summary"]["score"] == 90
    assert payload["version"]
    assert store.load(snapshot.id) == snapshot
    assert store.load("does-not-exist") is None


def test_saving_an_existing_id_never_overwrites(tmp_path: Path) -> None:
    store = SnapshotStore(tmp_path)
    snapshot = make_snapshot(make_result("a.ts"))
    path = store.save(snapshot)
    before = path.read_text(encoding="utf-8")

    with pytest.raises(StorageError, match="already exists"):
        store.save(snapshot)
    assert path.read_text(encoding="utf-8") == before


def test_newer_tagged_snapshot_wins_over_baseline_file(tmp_path: Path) -> None:
    store = SnapshotStore(tmp_path)
    promoted = make_snapshot(make_result("a.ts"), minute=1)
    newer = make_snapshot(make_result("a.ts", high=1), minute=2)
    store.save(promoted)
    path = store.save_baseline(promoted, "main")
    store.save(newer)

    assert path.name == "baseline-main.json"
    assert store.load_baseline("main") == newer


def test_baseline_file_wins_when_it_is_the_newest_run(tmp_path: Path) -> None:
    store = SnapshotStore(tmp_path)
    older = make_snapshot(make_result("a.ts", high=1), minute=1)
    pinned = make_snapshot(make_result("a.ts"), minute=3)
    store.save(older)
    store.save_baseline(pinned, "main")

    assert store.load_baseline("main") == pinned


def test_resolve_baseline_uses_newest_run_of_baseline_branch(tmp_path: Path) -> None:
    store = SnapshotStore(tmp_path)
    first = make_snapshot(make_result("a.ts"), minute=1)
    second = make_snapshot(make_result("a.ts", low=1), minute=2)
    store.save(first)
    store.save_baseline(first, "main")
    store.save(second)

    resolution = store.resolve_baseline("feature/x", "main")
    assert resolution.snapshot == second
    assert resolution.notice is None


def test_baseline_falls_back_to_latest_snapshot_of_branch(tmp_path: Path) -> None:
    store = SnapshotStore(tmp_path)
    older = make_snapshot(make_result("a.ts"), branch="main", minute=1)
    newer = make_snapshot(make_result("a.ts", low=1), branch="main", minute=2)
    other = make_snapshot(make_result("a.ts", high=1), branch="feature/x", minute=3)
    for snapshot in (older, newer, other):
        store.save(snapshot)

    assert store.load_baseline("main") == newer
    assert store.load_latest() == other
    assert store.load_latest(branch="release") is None


def test_corrupt_files_are_treated_as_absent(tmp_path: Path) -> None:
    store = SnapshotStore(tmp_path)
    good = make_snapshot(make_result("a.ts"), minute=1)
    store.save(good)
    store.baseline_path("main").write_text("{not json", encoding="utf-8")
    (tmp_path / "snapshot-99999999T000000000000Z-ffffff.json").write_text(
        json.dumps({"id": "broken"}), encoding="utf-8"
    )

    assert store.load_baseline("main") == good


def test_branch_names_are_made_file_safe(tmp_path: Path) -> None:
    assert branch_slug("feature/login-form") == "feature-login-form"
    assert branch_slug("main") == "main"
    store = SnapshotStore(tmp_path)
    assert store.baseline_path("feature/x").name == "baseline-feature-x.json"


def test_resolve_baseline_bootstraps_on_baseline_branch(tmp_path: Path) -> None:
    resolution = SnapshotStore(tmp_path).resolve_baseline("main", "main")
    assert resolution.snapshot is None
    assert resolution.bootstrap is True
    assert "becomes the baseline" in (resolution.notice or "")


def test_resolve_baseline_without_baseline_elsewhere_is_a_notice(tmp_path: Path) -> None:
    resolution = SnapshotStore(tmp_path).resolve_baseline("feature/x", "main")
    assert resolution.snapshot is None
    assert resolution.bootstrap is False
    assert "No baseline found for 'main'" in (resolution.notice or "")


def test_resolve_baseline_prefers_explicit_id(tmp_path: Path) -> None:
    store = SnapshotStore(tmp_path)
    pinned = make_snapshot(make_result("a.ts", high=2), branch="feature/y", minute=1)
    store.save(pinned)
    store.save_baseline(make_snapshot(make_result("a.ts"), minute=2), "main")

    assert store.resolve_baseline("feature/x", "main", pinned.id).snapshot == pinned
    missing = store.resolve_baseline("feature/x", "main", "nope")
    assert missing.snapshot is None
    assert "'nope' was not found" in (missing.notice or "")


def test_ensure_writable_rejects_a_file_in_the_way(tmp_path: Path) -> None:
    blocker = tmp_path / "snaps"
    blocker.write_text("", encoding="utf-8")
    with pytest.raises(StorageError, match="not writable"):
        SnapshotStore(blocker).ensure_writable()


def test_write_text_replaces_atomically(tmp_path: Path) -> None:
    store = SnapshotStore(tmp_path)
    target = store.report_path("run-1")
    store.write_text(target, "first")
    store.write_text(target, "second")
    assert target.read_text(encoding="utf-8") == "second"
    assert [path.name for path in tmp_path.iterdir()] == ["report-run-1.json"]
