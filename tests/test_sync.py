from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from app.core.errors import SourceUnavailable
from app.models import UNKNOWN_ROCKET_NAME, LaunchModel, LaunchPadModel, PayloadModel, RocketModel
from app.services.repository import LaunchRepository
from app.services.stats import StatisticsEngine
from app.services.sync import SyncOrchestrator

from conftest import NOW, launch_json


def _store_snapshot(session_factory):
    with session_factory() as db:
        launches = {
            launch.id: (launch.name, launch.date_utc, launch.success, launch.rocket_id, launch.launch_pad_id,
                        sorted(p.id for p in launch.payloads))
            for launch in db.query(LaunchModel).all()
        }
        return {
            "launches": launches,
            "rockets": sorted(r.id for r in db.query(RocketModel).all()),
            "pads": sorted(p.id for p in db.query(LaunchPadModel).all()),
            "payloads": sorted((p.id, p.launch_id) for p in db.query(PayloadModel).all()),
        }


def test_sync_twice_is_idempotent(session_factory, cache, fake_source):
    fake_source.launches = [
        launch_json("L1", NOW - timedelta(days=10), True, "falcon9", "slc40", ["p1", "p2"]),
        launch_json("L2", NOW - timedelta(days=5), False, "falcon9", "slc40", ["p3"]),
        launch_json("L3", NOW + timedelta(days=5), None, "unknown-rocket", "slc40"),
    ]
    orchestrator = SyncOrchestrator(fake_source, cache, session_factory)

    first = orchestrator.synchronize()
    snapshot = _store_snapshot(session_factory)
    second = orchestrator.synchronize()

    assert first == second == 3
    assert _store_snapshot(session_factory) == snapshot
    assert snapshot["payloads"] == [("p1", "L1"), ("p2", "L1"), ("p3", "L2")]


def test_every_reference_exists_after_sync(session_factory, cache, fake_source):
    fake_source.launches = [
        launch_json("L1", NOW, True, "falcon9", "slc40"),
        launch_json("L2", NOW, True, "gone-rocket", "gone-pad"),
        launch_json("L3", NOW, None, None, None),
    ]
    SyncOrchestrator(fake_source, cache, session_factory).synchronize()

    with session_factory() as db:
        for launch in db.query(LaunchModel).all():
            if launch.rocket_id:
                assert db.get(RocketModel, launch.rocket_id) is not None
            if launch.launch_pad_id:
                assert db.get(LaunchPadModel, launch.launch_pad_id) is not None
        assert db.get(LaunchModel, "L3").rocket_id is None


def test_unreachable_rocket_gets_a_single_placeholder(session_factory, cache, fake_source):
    fake_source.launches = [launch_json(f"L{i}", NOW, True, "r-down") for i in range(5)]

    report = SyncOrchestrator(fake_source, cache, session_factory).run_pass()

    assert report.processed == 5
    assert report.placeholders == 1
    assert fake_source.calls["rocket:r-down"] == 1
    with session_factory() as db:
        rockets = db.query(RocketModel).all()
        assert [(r.id, r.name, r.is_placeholder) for r in rockets] == [("r-down", UNKNOWN_ROCKET_NAME, True)]
        assert {launch.rocket_id for launch in db.query(LaunchModel).all()} == {"r-down"}


def test_fatal_fetch_leaves_store_and_cache_untouched(session_factory, cache, fake_source, clock):
    fake_source.launches = [launch_json("L1", NOW - timedelta(days=1), True, "falcon9")]
    orchestrator = SyncOrchestrator(fake_source, cache, session_factory)
    orchestrator.synchronize()
    engine = StatisticsEngine(cache, session_factory, clock=clock)
    before_stats = engine.get_global_stats()
    before = _store_snapshot(session_factory)
    generation = cache.generation

    fake_source.launches.append(launch_json("L2", NOW - timedelta(days=2), True, "falcon9"))
    fake_source.launches_error = SourceUnavailable("HTTP 503", status_code=503)

    with pytest.raises(SourceUnavailable):
        orchestrator.synchronize()

    assert _store_snapshot(session_factory) == before
    assert cache.generation == generation
    assert engine.get_global_stats() == before_stats


def test_two_failed_writes_out_of_ten(session_factory, cache, fake_source, monkeypatch):
    fake_source.launches = [launch_json(f"L{i}", NOW - timedelta(days=i), True, "falcon9") for i in range(10)]
    broken = {"L3", "L7"}
    original_save = LaunchRepository.save

    def flaky_save(self, launch):
        if launch.id in broken:
            raise OperationalError("INSERT INTO launches", {}, Exception("database is locked"))
        return original_save(self, launch)

    monkeypatch.setattr(LaunchRepository, "save", flaky_save)

    report = SyncOrchestrator(fake_source, cache, session_factory).run_pass()

    assert report.processed == 8
    assert report.failed == 2
    assert sorted(report.failed_ids) == ["L3", "L7"]
    with session_factory() as db:
        stored = {launch.id for launch in db.query(LaunchModel).all()}
    assert stored == {f"L{i}" for i in range(10)} - broken


def test_malformed_records_are_skipped(session_factory, cache, fake_source):
    fake_source.launches = [
        launch_json("L1", NOW, True, "falcon9"),
        {"name": "no id"},
        "not an object",
        {"id": "L2", "date_utc": "not a date"},
    ]

    report = SyncOrchestrator(fake_source, cache, session_factory).run_pass()

    assert (report.processed, report.skipped, report.failed) == (1, 3, 0)


def test_payload_set_is_replaced_not_merged(session_factory, cache, fake_source):
    fake_source.launches = [
        launch_json("L1", NOW, True, "falcon9", payloads=["p1", "p2"]),
        launch_json("L2", NOW, True, "falcon9", payloads=["p9"]),
    ]
    orchestrator = SyncOrchestrator(fake_source, cache, session_factory)
    orchestrator.synchronize()

    # p9 moves from L2 to L1, p1 disappears
    fake_source.launches = [
        launch_json("L1", NOW, True, "falcon9", payloads=["p2", "p3", "p9", "p3"]),
        launch_json("L2", NOW, True, "falcon9", payloads=[]),
    ]
    orchestrator.synchronize()

    with session_factory() as db:
        assert sorted((p.id, p.launch_id) for p in db.query(PayloadModel).all()) == [
            ("p2", "L1"), ("p3", "L1"), ("p9", "L1"),
        ]


def test_sync_invalidates_statistics(session_factory, cache, fake_source, clock):
    engine = StatisticsEngine(cache, session_factory, clock=clock)
    fake_source.launches = [launch_json("L1", NOW - timedelta(days=3), True, "falcon9")]
    orchestrator = SyncOrchestrator(fake_source, cache, session_factory)
    orchestrator.synchronize()

    before = engine.get_global_stats()
    fake_source.launches.append(launch_json("L2", NOW - timedelta(days=2), False, "falcon9"))
    orchestrator.synchronize()
    after = engine.get_global_stats()

    assert (before.total_launches, before.success_rate) == (1, 100.0)
    assert (after.total_launches, after.success_rate) == (2, 50.0)


def test_unreachable_rocket_scenario(session_factory, cache, fake_source, clock):
    fake_source.launches = [
        launch_json("L1", NOW + timedelta(days=30), None, "R1"),
        launch_json("L2", NOW - timedelta(days=30), True, "R1"),
    ]

    processed = SyncOrchestrator(fake_source, cache, session_factory).synchronize()
    stats = StatisticsEngine(cache, session_factory, clock=clock).get_global_stats()

    assert processed == 2
    with session_factory() as db:
        rockets = db.query(RocketModel).all()
        assert [(r.id, r.name) for r in rockets] == [("R1", UNKNOWN_ROCKET_NAME)]
    assert stats.total_launches == 2
    assert stats.success_rate == 50.0
    assert stats.next_launch.id == "L1"


def test_concurrent_workers_match_inline_pass(session_factory, cache, fake_source):
    fake_source.launches = [
        launch_json(f"L{i}", NOW - timedelta(days=i), i % 3 != 0,
                    "falcon9" if i % 2 else "r-down", "slc40" if i % 4 else "pad-down",
                    [f"p{i}a", f"p{i}b"])
        for i in range(40)
    ]

    report = SyncOrchestrator(fake_source, cache, session_factory, max_workers=4).run_pass()

    assert report.processed == 40
    assert report.failed == 0
    assert fake_source.calls["rocket:r-down"] == 1
    assert fake_source.calls["launchpad:pad-down"] == 1
    with session_factory() as db:
        assert db.query(LaunchModel).count() == 40
        assert db.query(PayloadModel).count() == 80
        assert db.query(RocketModel).count() == 2
        assert db.query(LaunchPadModel).count() == 2
