"""Tests for death/respawn events."""

from __future__ import annotations

from auton8_bridge.game import TickSample
from auton8_bridge.life import LifeMonitor
from auton8_bridge.navigation.model import Vec3

from .conftest import RecordingPublisher

HERE = Vec3(1.0, 64.0, -2.0)


def _sample(alive: bool | None, position: Vec3 | None = HERE) -> TickSample:
    return TickSample(position=position, alive=alive, world="singleplayer")


def test_first_sample_is_baseline(publisher: RecordingPublisher):
    monitor = LifeMonitor(publisher)
    monitor.on_tick(_sample(False), now_ms=0)
    assert publisher.published == []


def test_death_and_respawn(publisher: RecordingPublisher):
    monitor = LifeMonitor(publisher)
    monitor.on_tick(_sample(True), now_ms=0)
    monitor.on_tick(_sample(False), now_ms=1000)
    monitor.on_tick(_sample(True), now_ms=5000)

    life = publisher.events("life")
    assert [e["value"] for e in life] == ["dead", "respawned"]
    assert life[0]["world"] == "singleplayer"
    assert (life[0]["x"], life[0]["y"], life[0]["z"]) == (1.0, 64.0, -2.0)


def test_transitions_are_debounced(publisher: RecordingPublisher):
    monitor = LifeMonitor(publisher, min_gap_ms=750)
    monitor.on_tick(_sample(True), now_ms=0)
    monitor.on_tick(_sample(False), now_ms=1000)
    monitor.on_tick(_sample(True), now_ms=1200)
    assert [e["value"] for e in publisher.events("life")] == ["dead"]

    monitor.on_tick(_sample(True), now_ms=1800)
    assert [e["value"] for e in publisher.events("life")] == ["dead", "respawned"]


def test_unknown_samples_ignored(publisher: RecordingPublisher):
    monitor = LifeMonitor(publisher)
    monitor.on_tick(_sample(True), now_ms=0)
    monitor.on_tick(_sample(None), now_ms=1000)
    monitor.on_tick(_sample(False, position=None), now_ms=2000)
    assert publisher.published == []
