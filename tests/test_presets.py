"""Tests for saved job presets."""

import json
from datetime import datetime, timezone

from robo_ui.presets import JobPreset, PresetStore


def test_missing_file_means_no_presets(store):
    assert store.load() == []
    assert store.get("anything") is None


def test_save_and_load(store):
    when = datetime(2026, 10, 19, 8, 30, tzinfo=timezone.utc)
    store.save([
        JobPreset(name="b-job", source="B", destination="BB", mirror=True, threads=16),
        JobPreset(name="A-job", source="A", destination="AA", last_run=when),
    ])
    loaded = store.load()
    assert [p.name for p in loaded] == ["A-job", "b-job"]
    assert loaded[0].last_run == when
    assert loaded[1].mirror is True
    assert loaded[1].threads == 16


def test_save_overwrites_whole_collection(store):
    store.save([JobPreset(name="one"), JobPreset(name="two")])
    store.save([JobPreset(name="three")])
    assert [p.name for p in store.load()] == ["three"]


def test_upsert_replaces_case_insensitively(store):
    store.upsert(JobPreset(name="Nightly", source="A", destination="B"))
    store.upsert(JobPreset(name="nightly", source="C", destination="D"))
    presets = store.load()
    assert len(presets) == 1
    assert presets[0].name == "nightly"
    assert presets[0].source == "C"


def test_delete(store):
    store.upsert(JobPreset(name="Keep"))
    store.upsert(JobPreset(name="Drop"))
    assert store.delete("DROP")
    assert not store.delete("Drop")
    assert [p.name for p in store.load()] == ["Keep"]


def test_touch_last_run(store):
    store.upsert(JobPreset(name="Nightly"))
    when = datetime(2026, 1, 2, 3, 4, tzinfo=timezone.utc)
    assert store.touch_last_run("nightly", when)
    assert store.get("Nightly").last_run == when
    assert not store.touch_last_run("missing")


def test_touch_last_run_defaults_to_now(store):
    store.upsert(JobPreset(name="Nightly"))
    store.touch_last_run("Nightly")
    assert store.get("Nightly").last_run is not None


def test_corrupt_file_loads_empty(store):
    store.path.write_text("{not json", encoding="utf-8")
    assert store.load() == []
    store.path.write_text('{"name": "not a list"}', encoding="utf-8")
    assert store.load() == []


def test_tolerates_unknown_keys_and_bad_entries(store):
    store.path.write_text(
        json.dumps([
            {"name": "Old", "source": "S", "destination": "D", "someFutureField": 1},
            "garbage",
            {"name": "BadStamp", "last_run": "yesterday"},
        ]),
        encoding="utf-8",
    )
    presets = store.load()
    assert [p.name for p in presets] == ["BadStamp", "Old"]
    assert presets[0].last_run is None
    assert presets[1].copy_subdirs is True


def test_display_name():
    assert JobPreset(name="Nightly").display_name == "Nightly"
    preset = JobPreset(name="Nightly", last_run=datetime(2026, 10, 19, 7, 5))
    assert preset.display_name == "Nightly  (Last: 2026-10-19 07:05)"
