from __future__ import annotations

import dataclasses
import math
import threading

import pytest

from flocking.sim.core.errors import InvalidParameterError
from flocking.sim.core.params import ParameterSet, ParameterStore


def test_defaults_are_valid():
    params = ParameterSet().validate()
    assert params.view_angle == pytest.approx(math.pi / 3)
    assert params.as_dict()["view_radius"] == 100.0


def test_update_swaps_in_new_set_and_leaves_old_snapshot_alone():
    store = ParameterStore()
    before = store.snapshot()
    after = store.update(cohesion_weight=2.5, view_radius="40")

    assert before.cohesion_weight == 1.0
    assert after.cohesion_weight == 2.5
    assert after.view_radius == 40.0
    assert store.snapshot() is after
    assert store.version == 1
    with pytest.raises(dataclasses.FrozenInstanceError):
        after.cohesion_weight = 3.0  # type: ignore[misc]


@pytest.mark.parametrize(
    "changes",
    [
        {"separation_weight": -1.0},
        {"view_radius": float("nan")},
        {"view_angle": 0.0},
        {"view_angle": 4.0},
        {"speed": 1.0},
        {"alignment_weight": "fast"},
    ],
)
def test_invalid_updates_are_rejected_without_side_effects(changes):
    store = ParameterStore()
    with pytest.raises(InvalidParameterError):
        store.update(**changes)
    assert store.snapshot() == ParameterSet()
    assert store.version == 0


def test_reset_restores_initial_set():
    initial = ParameterSet(alignment_weight=0.25)
    store = ParameterStore(initial)
    store.update(alignment_weight=3.0)
    assert store.reset() == initial


def test_concurrent_writers_never_expose_a_torn_set():
    store = ParameterStore()
    stop = threading.Event()
    torn: list[ParameterSet] = []

    def writer(offset: int) -> None:
        for i in range(500):
            value = float(offset + i)
            store.update(cohesion_weight=value, alignment_weight=value)

    def reader() -> None:
        while not stop.is_set():
            snap = store.snapshot()
            if snap.cohesion_weight != snap.alignment_weight:
                torn.append(snap)

    readers = [threading.Thread(target=reader) for _ in range(2)]
    writers = [threading.Thread(target=writer, args=(n * 1000,)) for n in range(3)]
    for thread in readers + writers:
        thread.start()
    for thread in writers:
        thread.join()
    stop.set()
    for thread in readers:
        thread.join()

    assert torn == []
    assert store.version == 1500
