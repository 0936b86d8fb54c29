"""Pet system — vitals, lifecycle and mood."""
from pipet.pet.mood import Mood, determine_mood, distress_reason
from pipet.pet.state import PersistenceError, PetSnapshot, PetState

__all__ = [
    "Mood",
    "determine_mood",
    "distress_reason",
    "PersistenceError",
    "PetSnapshot",
    "PetState",
]
