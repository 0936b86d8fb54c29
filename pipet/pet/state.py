"""
Pet State — the pet's vitals, lifecycle and last-seen host metrics.

This is the only resource mutated from several independent call paths: chat
interactions feed and play with the pet while the telemetry path keeps
rewriting its vitals from host metrics. Every operation takes a readers/writer
lock; snapshots share the read side, mutators hold the write side.

Vitals are always clamped to [0, 100] on write. Mood and age are derived at
snapshot time and never stored.
"""

from __future__ import annotations

import os
import tempfile
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Iterator, Optional, Union

import structlog
from pydantic import BaseModel, ValidationError, field_validator

from pipet.pet.mood import Mood, determine_mood

logger = structlog.get_logger(__name__)

# Continuous decay rates applied by apply_system_stats()
HAPPINESS_DECAY_PER_HOUR = 2.0
BOND_DECAY_PER_HOUR = 0.5

# uptime_days -> energy drain
ENERGY_DRAIN_PER_UPTIME_DAY = 14.0

# Death needs all three at once
DEATH_HUNGER_AT_LEAST = 95.0
DEATH_MEM_AT_LEAST = 95.0
DEATH_ENERGY_AT_MOST = 5.0

STATE_FILE_MODE = 0o644

_VITALS = ("hunger", "happiness", "energy", "cleanliness", "bond")


class PersistenceError(RuntimeError):
    """Raised when pet state cannot be saved to or loaded from disk."""


def clamp(value: float) -> float:
    return max(0.0, min(100.0, float(value)))


class ReadWriteLock:
    """
    Many concurrent readers or one writer.

    Waiting writers block new readers so a steady stream of snapshots cannot
    starve the telemetry path.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class PetRecord(BaseModel):
    """Every stored field of the pet. This is exactly what goes to disk."""

    # Identity (set once the owner names the pet)
    name: str = ""
    species_id: str = ""

    # Vitals (0-100)
    hunger: float = 20.0          # 0=full, 100=starving
    happiness: float = 80.0
    energy: float = 80.0
    cleanliness: float = 80.0
    bond: float = 10.0            # 0=stranger, 100=soulmates

    # Lifecycle (epoch seconds)
    born_at: float = 0.0
    last_interaction: float = 0.0
    last_fed: float = 0.0
    is_alive: bool = True

    # Host metrics, written by the telemetry path
    cpu_percent: float = 0.0
    mem_percent: float = 0.0
    disk_percent: float = 0.0
    temp_c: float = 0.0
    uptime_days: float = 0.0

    # Point up to which happiness/bond decay has already been applied
    decayed_until: Optional[float] = None

    @field_validator(*_VITALS)
    @classmethod
    def clamp_vitals(cls, value: float) -> float:
        return clamp(value)


@dataclass(frozen=True)
class PetSnapshot:
    """An immutable point-in-time copy of the pet, with derived mood and age."""

    name: str
    species_id: str
    hunger: float
    happiness: float
    energy: float
    cleanliness: float
    bond: float
    born_at: float
    last_interaction: float
    last_fed: float
    is_alive: bool
    cpu_percent: float
    mem_percent: float
    disk_percent: float
    temp_c: float
    uptime_days: float
    mood: Mood = Mood.CONTENT
    age_days: float = 0.0


class PetState:
    """
    The pet's mutable state, guarded by a readers/writer lock.

    Construct one per process and hand it explicitly to every collaborator
    (brain, telemetry applier, transport). ``clock`` returns epoch seconds and
    exists so tests can control time.
    """

    def __init__(
        self,
        name: str = "",
        species_id: str = "",
        *,
        clock: Callable[[], float] = time.time,
        record: Optional[PetRecord] = None,
    ) -> None:
        self._clock = clock
        self._lock = ReadWriteLock()
        if record is None:
            now = clock()
            record = PetRecord(
                name=name,
                species_id=species_id,
                born_at=now,
                last_interaction=now,
                last_fed=now,
            )
        self._record = record

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def snapshot(self) -> PetSnapshot:
        """Copy every field under the read lock, then derive mood and age."""
        with self._lock.read():
            data = self._record.model_dump(exclude={"decayed_until"})
        snap = PetSnapshot(**data)
        age_days = max(0.0, self._clock() - snap.born_at) / 86400.0
        return replace(snap, mood=determine_mood(snap), age_days=age_days)

    def is_alive(self) -> bool:
        with self._lock.read():
            return self._record.is_alive

    def is_onboarded(self) -> bool:
        with self._lock.read():
            return bool(self._record.name and self._record.species_id)

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def set_identity(self, name: str, species_id: str) -> None:
        """Name the pet and start its life over with starting vitals."""
        with self._lock.write():
            now = self._clock()
            self._record = PetRecord(
                name=name,
                species_id=species_id,
                born_at=now,
                last_interaction=now,
                last_fed=now,
            )
        logger.info("pet_state.identity_set", name=name, species_id=species_id)

    def feed(self) -> None:
        with self._lock.write():
            r = self._record
            now = self._clock()
            r.hunger = clamp(r.hunger - 30)
            r.happiness = clamp(r.happiness + 5)
            r.last_fed = now
            r.last_interaction = now
            self._bump_bond()

    def play(self) -> None:
        with self._lock.write():
            r = self._record
            r.happiness = clamp(r.happiness + 20)
            r.energy = clamp(r.energy - 10)
            r.hunger = clamp(r.hunger + 5)
            r.last_interaction = self._clock()
            self._bump_bond()

    def pet(self) -> None:
        """Affection: a little happiness and a bond bump."""
        with self._lock.write():
            r = self._record
            r.happiness = clamp(r.happiness + 10)
            r.last_interaction = self._clock()
            self._bump_bond()

    def touch_interaction(self) -> None:
        """Record that the owner interacted, without changing other vitals."""
        with self._lock.write():
            self._record.last_interaction = self._clock()
            self._bump_bond()

    def apply_system_stats(
        self,
        cpu: float,
        mem: float,
        disk: float,
        temp_c: float,
        uptime_days: float,
    ) -> None:
        """
        Map host telemetry onto vitals.

        CPU load is hunger, free disk is cleanliness, and a long uptime tires
        the pet out. Happiness and bond decay with the time spent alone since
        the last interaction, integrated across calls so the total decay does
        not depend on how often telemetry arrives.
        """
        died = False
        with self._lock.write():
            r = self._record
            now = self._clock()

            r.cpu_percent = float(cpu)
            r.mem_percent = float(mem)
            r.disk_percent = float(disk)
            r.temp_c = float(temp_c)
            r.uptime_days = float(uptime_days)

            r.hunger = clamp(cpu)
            r.cleanliness = clamp(100 - disk)
            r.energy = clamp(100 - uptime_days * ENERGY_DRAIN_PER_UPTIME_DAY)

            decay_from = r.last_interaction
            if r.decayed_until is not None:
                decay_from = max(decay_from, r.decayed_until)
            hours_alone = max(0.0, now - decay_from) / 3600.0
            r.happiness = clamp(r.happiness - hours_alone * HAPPINESS_DECAY_PER_HOUR)
            r.bond = clamp(r.bond - hours_alone * BOND_DECAY_PER_HOUR)
            r.decayed_until = now

            if (
                r.is_alive
                and r.hunger >= DEATH_HUNGER_AT_LEAST
                and r.mem_percent >= DEATH_MEM_AT_LEAST
                and r.energy <= DEATH_ENERGY_AT_MOST
            ):
                r.is_alive = False
                died = True

        if died:
            logger.warning(
                "pet_state.died",
                cpu=cpu,
                mem=mem,
                uptime_days=uptime_days,
            )

    def kill(self) -> None:
        with self._lock.write():
            self._record.is_alive = False
        logger.info("pet_state.killed")

    def revive(self) -> None:
        """Bring the pet back with baseline vitals. Half the bond survives."""
        with self._lock.write():
            r = self._record
            r.is_alive = True
            r.hunger = 20.0
            r.happiness = 50.0
            r.energy = 50.0
            r.cleanliness = 50.0
            r.bond = clamp(r.bond * 0.5)
            r.last_interaction = self._clock()
        logger.info("pet_state.revived")

    def _bump_bond(self) -> None:
        """Diminishing returns at high bond. Caller holds the write lock."""
        r = self._record
        gain = 2.0
        if r.bond > 50:
            gain = 1.0
        if r.bond > 80:
            gain = 0.5
        r.bond = clamp(r.bond + gain)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, path: Union[str, Path]) -> None:
        """
        Write the state to disk atomically.

        The record is written to a temp file in the target directory and then
        renamed over the target, so a crash mid-write never leaves a
        half-written file behind.
        """
        target = Path(path)
        with self._lock.read():
            data = self._record.model_dump_json(indent=2)

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp"
            )
            try:
                with open(fd, "w", encoding="utf-8") as f:
                    f.write(data)
                    f.flush()
                    os.fsync(f.fileno())
                # mkstemp creates 0600
                os.chmod(tmp_path, STATE_FILE_MODE)
                os.replace(tmp_path, target)
            except BaseException:
                Path(tmp_path).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise PersistenceError(f"Failed to save pet state to {target}: {exc}") from exc

        logger.debug("pet_state.saved", path=str(target), size_bytes=len(data))

    @classmethod
    def load(
        cls,
        path: Union[str, Path],
        *,
        clock: Callable[[], float] = time.time,
    ) -> PetState:
        """
        Reconstitute a store from disk.

        A missing file means first run: a fresh, un-named pet is returned.
        Unreadable or invalid files raise PersistenceError.
        """
        source = Path(path)
        try:
            raw = source.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info("pet_state.no_saved_state", path=str(source))
            return cls(clock=clock)
        except OSError as exc:
            raise PersistenceError(f"Failed to read pet state from {source}: {exc}") from exc

        try:
            record = PetRecord.model_validate_json(raw)
        except ValidationError as exc:
            raise PersistenceError(f"Corrupt pet state in {source}: {exc}") from exc

        logger.info("pet_state.loaded", path=str(source), name=record.name)
        return cls(clock=clock, record=record)
