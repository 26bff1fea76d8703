"""Debouncing of per-frame predictions into confirmation events."""

from dataclasses import dataclass
from typing import Optional

from ..core.types import Orientation


def vote_key(card_id: int, orientation: Orientation) -> str:
    return f"{card_id}:{'r' if orientation.is_reversed else 'v'}"


@dataclass
class Vote:
    key: str
    count: int = 1


class VoteTracker:
    """Counts consecutive identical predictions.

    A key confirms once it has been seen ``required`` times in a row, and
    not again until a different key confirms or :meth:`reset` is called.
    """

    def __init__(self):
        self.vote: Optional[Vote] = None
        self.last_confirmed_key = ""

    def observe(self, key: str, required: int) -> bool:
        """Record one prediction; True when it confirms ``key``."""
        if self.vote is None or self.vote.key != key:
            self.vote = Vote(key)
        else:
            self.vote.count += 1

        if self.vote.count < required or key == self.last_confirmed_key:
            return False

        self.last_confirmed_key = key
        return True

    def reset(self) -> None:
        self.vote = None
        self.last_confirmed_key = ""
