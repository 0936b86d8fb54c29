"""
Mood — the pet's visible disposition, derived from a snapshot.

Mood is never stored. It is recomputed from vitals and host metrics every
time a snapshot is taken, so it cannot drift from the numbers behind it.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from pipet.pet.state import PetSnapshot


class Mood(str, Enum):
    """Named moods, listed in priority order."""
    DEAD = "dead"
    SICK = "sick"
    ANXIOUS = "anxious"
    SLEEPY = "sleepy"
    HUNGRY = "hungry"
    BORED = "bored"
    HAPPY = "happy"
    CONTENT = "content"


def determine_mood(snapshot: PetSnapshot) -> Mood:
    """
    Classify a snapshot into a mood. The first matching rule wins.

    Priority: dead > sick > anxious > sleepy > hungry > bored > happy > content
    """
    if not snapshot.is_alive:
        return Mood.DEAD

    # Memory critical
    if snapshot.mem_percent > 90:
        return Mood.SICK

    # Running hot
    if snapshot.temp_c > 70:
        return Mood.ANXIOUS

    if snapshot.energy < 20:
        return Mood.SLEEPY

    if snapshot.hunger > 70:
        return Mood.HUNGRY

    if snapshot.happiness < 30:
        return Mood.BORED

    if snapshot.happiness > 70 and snapshot.hunger < 40 and snapshot.energy > 40:
        return Mood.HAPPY

    return Mood.CONTENT


def distress_reason(snapshot: PetSnapshot) -> Optional[str]:
    """Return a short complaint when the host is in trouble, else None."""
    if snapshot.mem_percent > 90:
        return "Memory usage is critical! I'm not feeling well..."
    if snapshot.temp_c > 75:
        return "It's getting really hot in here! The host is overheating!"
    if snapshot.cpu_percent > 90:
        return "The CPU is maxed out! I can barely think..."
    if snapshot.disk_percent > 95:
        return "Disk is almost full! I'm running out of space..."
    return None
