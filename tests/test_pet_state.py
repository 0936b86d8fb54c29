"""
Tests for pipet.pet.state — the pet's vitals, lifecycle and persistence.

Covers:
- Interaction effects (feed / play / pet / touch) and diminishing bond gains
- Vitals always clamped to [0, 100]
- Telemetry mapping, continuous decay and the one-way death trigger
- kill / revive / set_identity
- Atomic save and load, including missing and corrupt files
"""

from __future__ import annotations

import json
import random
import stat
import threading

import pytest

from pipet.pet.mood import Mood
from pipet.pet.state import (
    BOND_DECAY_PER_HOUR,
    HAPPINESS_DECAY_PER_HOUR,
    STATE_FILE_MODE,
    PersistenceError,
    PetRecord,
    PetState,
    clamp,
)

VITALS = ("hunger", "happiness", "energy", "cleanliness", "bond")


def _state(clock, **fields) -> PetState:
    """A named pet born at clock time with the given field overrides."""
    now = clock()
    record = PetRecord(
        name="Inky",
        species_id="octopus",
        born_at=now,
        last_interaction=now,
        last_fed=now,
        **fields,
    )
    return PetState(clock=clock, record=record)


# ---------------------------------------------------------------------------
# Interactions
# ---------------------------------------------------------------------------

class TestInteractions:

    def test_feed_lowers_hunger_and_records_time(self, clock):
        state = _state(clock, hunger=50, happiness=98)
        clock.advance(600)
        state.feed()
        snap = state.snapshot()
        assert snap.hunger == 20
        assert snap.happiness == 100  # +5 clamped
        assert snap.last_fed == clock.now
        assert snap.last_interaction == clock.now

    def test_feed_never_drives_hunger_negative(self, clock):
        state = _state(clock, hunger=10)
        state.feed()
        assert state.snapshot().hunger == 0

    def test_play_trades_energy_for_happiness(self, clock):
        state = _state(clock, happiness=50, energy=50, hunger=20)
        state.play()
        snap = state.snapshot()
        assert snap.happiness == 70
        assert snap.energy == 40
        assert snap.hunger == 25

    def test_pet_raises_happiness(self, clock):
        state = _state(clock, happiness=50)
        clock.advance(30)
        state.pet()
        snap = state.snapshot()
        assert snap.happiness == 60
        assert snap.last_interaction == clock.now

    def test_touch_interaction_only_updates_time_and_bond(self, clock):
        state = _state(clock, hunger=33, happiness=44, bond=10)
        clock.advance(5)
        state.touch_interaction()
        snap = state.snapshot()
        assert snap.hunger == 33
        assert snap.happiness == 44
        assert snap.bond == 12
        assert snap.last_interaction == clock.now


class TestBondGain:
    """Bond gains shrink as the bond grows."""

    @pytest.mark.parametrize(
        "start, expected",
        [
            (10.0, 12.0),
            (50.0, 52.0),
            (60.0, 61.0),
            (80.0, 81.0),
            (90.0, 90.5),
            (99.8, 100.0),
        ],
    )
    def test_bond_tiers(self, clock, start, expected):
        state = _state(clock, bond=start)
        state.pet()
        assert state.snapshot().bond == pytest.approx(expected)


class TestClamping:

    def test_clamp_helper(self):
        assert clamp(-5) == 0.0
        assert clamp(150) == 100.0
        assert clamp(42.5) == 42.5

    def test_record_clamps_out_of_range_vitals(self):
        record = PetRecord(hunger=150, happiness=-20, energy=101, bond=-1)
        assert record.hunger == 100
        assert record.happiness == 0
        assert record.energy == 100
        assert record.bond == 0

    def test_random_operation_sequences_stay_in_range(self, clock):
        rng = random.Random(1234)
        state = _state(clock)
        operations = [
            state.feed,
            state.play,
            state.pet,
            state.touch_interaction,
            state.revive,
            lambda: state.apply_system_stats(
                cpu=rng.uniform(-50, 200),
                mem=rng.uniform(0, 100),
                disk=rng.uniform(-50, 200),
                temp_c=rng.uniform(0, 100),
                uptime_days=rng.uniform(-5, 30),
            ),
        ]
        for _ in range(500):
            clock.advance(rng.uniform(0, 7200))
            rng.choice(operations)()
            snap = state.snapshot()
            for name in VITALS:
                assert 0.0 <= getattr(snap, name) <= 100.0, name


# ---------------------------------------------------------------------------
# Telemetry
# ---------------------------------------------------------------------------

class TestApplySystemStats:

    def test_metrics_map_onto_vitals(self, clock):
        state = _state(clock)
        state.apply_system_stats(cpu=35, mem=60, disk=25, temp_c=48, uptime_days=2)
        snap = state.snapshot()
        assert snap.hunger == 35
        assert snap.cleanliness == 75
        assert snap.energy == 72
        assert snap.cpu_percent == 35
        assert snap.mem_percent == 60
        assert snap.disk_percent == 25
        assert snap.temp_c == 48
        assert snap.uptime_days == 2

    def test_long_uptime_floors_energy(self, clock):
        state = _state(clock)
        state.apply_system_stats(cpu=10, mem=10, disk=10, temp_c=40, uptime_days=30)
        assert state.snapshot().energy == 0

    def test_happiness_and_bond_decay_while_alone(self, clock):
        state = _state(clock, happiness=80, bond=10)
        clock.advance(2 * 3600)
        state.apply_system_stats(cpu=10, mem=10, disk=10, temp_c=40, uptime_days=0)
        snap = state.snapshot()
        assert snap.happiness == pytest.approx(80 - 2 * HAPPINESS_DECAY_PER_HOUR)
        assert snap.bond == pytest.approx(10 - 2 * BOND_DECAY_PER_HOUR)

    def test_decay_is_not_applied_twice(self, clock):
        state = _state(clock, happiness=80)
        clock.advance(3600)
        state.apply_system_stats(cpu=10, mem=10, disk=10, temp_c=40, uptime_days=0)
        state.apply_system_stats(cpu=10, mem=10, disk=10, temp_c=40, uptime_days=0)
        assert state.snapshot().happiness == pytest.approx(80 - HAPPINESS_DECAY_PER_HOUR)

    def test_decay_does_not_depend_on_sampling_rate(self, clock):
        frequent = _state(clock, happiness=90, bond=40)
        rare = _state(clock, happiness=90, bond=40)
        for _ in range(12):
            clock.advance(600)
            frequent.apply_system_stats(cpu=10, mem=10, disk=10, temp_c=40, uptime_days=0)
        rare.apply_system_stats(cpu=10, mem=10, disk=10, temp_c=40, uptime_days=0)
        assert frequent.snapshot().happiness == pytest.approx(rare.snapshot().happiness)
        assert frequent.snapshot().bond == pytest.approx(rare.snapshot().bond)

    def test_interaction_resets_decay_window(self, clock):
        state = _state(clock, happiness=50)
        clock.advance(5 * 3600)
        state.pet()  # happiness 60
        state.apply_system_stats(cpu=10, mem=10, disk=10, temp_c=40, uptime_days=0)
        assert state.snapshot().happiness == pytest.approx(60)


class TestDeath:

    def test_exhausted_starving_pet_dies(self, clock):
        state = _state(clock)
        state.apply_system_stats(cpu=97, mem=96, disk=40, temp_c=50, uptime_days=7)
        snap = state.snapshot()
        assert snap.is_alive is False
        assert snap.mood is Mood.DEAD

    def test_two_of_three_conditions_is_not_enough(self, clock):
        state = _state(clock)
        # cpu and mem high but plenty of energy
        state.apply_system_stats(cpu=99, mem=99, disk=40, temp_c=50, uptime_days=0.1)
        assert state.is_alive() is True

    def test_death_is_one_way_until_revive(self, clock):
        state = _state(clock, bond=60)
        state.apply_system_stats(cpu=97, mem=96, disk=40, temp_c=50, uptime_days=7)
        assert state.is_alive() is False

        state.apply_system_stats(cpu=5, mem=20, disk=30, temp_c=40, uptime_days=0.1)
        state.feed()
        assert state.is_alive() is False

        state.revive()
        snap = state.snapshot()
        assert snap.is_alive is True
        assert (snap.hunger, snap.happiness, snap.energy, snap.cleanliness) == (20, 50, 50, 50)
        assert snap.last_interaction == clock.now


class TestLifecycle:

    def test_kill_and_revive_halves_bond(self, clock):
        state = _state(clock, bond=70)
        state.kill()
        assert state.is_alive() is False
        state.revive()
        assert state.snapshot().bond == 35

    def test_set_identity_restarts_life(self, clock):
        state = PetState(clock=clock)
        assert state.is_onboarded() is False
        state.kill()
        clock.advance(1000)

        state.set_identity("Bubbles", "axolotl")
        snap = state.snapshot()
        assert state.is_onboarded() is True
        assert (snap.name, snap.species_id) == ("Bubbles", "axolotl")
        assert snap.is_alive is True
        assert (snap.hunger, snap.happiness, snap.energy, snap.cleanliness, snap.bond) == (
            20, 80, 80, 80, 10,
        )
        assert snap.born_at == clock.now

    def test_age_derived_from_birth(self, clock):
        state = _state(clock)
        clock.advance(3 * 86400)
        assert state.snapshot().age_days == pytest.approx(3.0)

    def test_concurrent_mutators_and_readers(self, clock):
        state = _state(clock)
        errors: list[Exception] = []

        def writer():
            try:
                for _ in range(200):
                    state.feed()
                    state.play()
                    state.apply_system_stats(cpu=50, mem=50, disk=50, temp_c=40, uptime_days=1)
            except Exception as e:  # pragma: no cover - surfaced below
                errors.append(e)

        def reader():
            try:
                for _ in range(400):
                    snap = state.snapshot()
                    for name in VITALS:
                        assert 0.0 <= getattr(snap, name) <= 100.0
            except Exception as e:  # pragma: no cover - surfaced below
                errors.append(e)

        threads = [threading.Thread(target=writer) for _ in range(3)]
        threads += [threading.Thread(target=reader) for _ in range(3)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)
        assert errors == []


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

class TestPersistence:

    def test_save_then_load_round_trips(self, clock, tmp_path):
        state = _state(clock, bond=42.5)
        state.feed()
        state.apply_system_stats(cpu=12, mem=34, disk=56, temp_c=41.5, uptime_days=1.25)
        path = tmp_path / "state.json"
        state.save(path)

        loaded = PetState.load(path, clock=clock)
        assert loaded.snapshot() == state.snapshot()

    def test_save_leaves_no_temp_files(self, clock, tmp_path):
        path = tmp_path / "pet" / "state.json"
        _state(clock).save(path)
        _state(clock).save(path)
        assert [p.name for p in path.parent.iterdir()] == ["state.json"]

    def test_saved_file_is_world_readable(self, clock, tmp_path):
        path = tmp_path / "state.json"
        _state(clock).save(path)
        assert stat.S_IMODE(path.stat().st_mode) == STATE_FILE_MODE == 0o644

    def test_saved_file_holds_no_derived_fields(self, clock, tmp_path):
        path = tmp_path / "state.json"
        _state(clock).save(path)
        data = json.loads(path.read_text())
        assert "mood" not in data
        assert "age_days" not in data
        assert data["name"] == "Inky"

    def test_missing_file_gives_fresh_pet(self, clock, tmp_path):
        state = PetState.load(tmp_path / "nope.json", clock=clock)
        snap = state.snapshot()
        assert state.is_onboarded() is False
        assert snap.is_alive is True
        assert snap.born_at == clock.now

    def test_corrupt_file_raises(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json")
        with pytest.raises(PersistenceError):
            PetState.load(path)

    def test_wrong_types_raise(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"hunger": "very"}))
        with pytest.raises(PersistenceError):
            PetState.load(path)

    def test_unreadable_path_raises(self, tmp_path):
        # A directory where the file should be
        path = tmp_path / "state.json"
        path.mkdir()
        with pytest.raises(PersistenceError):
            PetState.load(path)

    def test_save_failure_raises(self, clock, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        with pytest.raises(PersistenceError):
            _state(clock).save(blocker / "state.json")

    def test_loaded_vitals_are_clamped(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"hunger": 250, "bond": -3}))
        snap = PetState.load(path).snapshot()
        assert snap.hunger == 100
        assert snap.bond == 0
