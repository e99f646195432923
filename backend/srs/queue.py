"""Queue selection for study sessions.

Picks the single next card to present from a deck, and builds shuffled
one-shot sequences for practice runs that never reschedule anything.
"""

import random
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from datetime import datetime

from backend.srs.scheduler import CardState, Stage


@dataclass(frozen=True)
class DeckCounts:
    """Per-stage card counts for one deck at a point in time."""

    total: int = 0
    new: int = 0
    learning: int = 0
    review: int = 0
    lapsed: int = 0
    due: int = 0  # learning, lapsed and review cards eligible right now


def _by_due(card: CardState) -> tuple[datetime, int]:
    return (card.due, card.id)


def _by_creation(card: CardState) -> tuple[datetime, int]:
    return (card.created_at or card.due, card.id)


def select_next(cards: Iterable[CardState], now: datetime) -> CardState | None:
    """Pick the card to present next, or None when nothing is due.

    Priority (first non-empty group wins):
    1. LEARNING/LAPSED cards due by ``now``, earliest due first.
    2. REVIEW cards due by ``now``, earliest due first.
    3. NEW cards, oldest created first.

    Ties are broken by card id so the choice is deterministic.
    """
    learning: list[CardState] = []
    review: list[CardState] = []
    new: list[CardState] = []

    for card in cards:
        if card.stage == Stage.NEW:
            new.append(card)
        elif card.due > now:
            continue
        elif card.is_learning:
            learning.append(card)
        elif card.stage == Stage.REVIEW:
            review.append(card)

    if learning:
        return min(learning, key=_by_due)
    if review:
        return min(review, key=_by_due)
    if new:
        return min(new, key=_by_creation)
    return None


def count_stages(cards: Iterable[CardState], now: datetime) -> DeckCounts:
    """Count a deck's cards per stage, plus how many are due now."""
    counts = {stage: 0 for stage in Stage}
    due = 0
    for card in cards:
        counts[card.stage] += 1
        if card.stage != Stage.NEW and card.due <= now:
            due += 1
    return DeckCounts(
        total=sum(counts.values()),
        new=counts[Stage.NEW],
        learning=counts[Stage.LEARNING],
        review=counts[Stage.REVIEW],
        lapsed=counts[Stage.LAPSED],
        due=due,
    )


class ShuffleReview(Iterator[CardState]):
    """A shuffled, one-shot walk through a deck for practice.

    Iterating consumes the sequence; once exhausted it stays exhausted.
    """

    def __init__(self, cards: Sequence[CardState]) -> None:
        self._cards = tuple(cards)
        self._index = 0

    def __iter__(self) -> "ShuffleReview":
        return self

    def __next__(self) -> CardState:
        if self._index >= len(self._cards):
            raise StopIteration
        card = self._cards[self._index]
        self._index += 1
        return card

    def __len__(self) -> int:
        return len(self._cards)

    @property
    def position(self) -> int:
        """Return how many cards have been handed out so far."""
        return self._index

    @property
    def remaining(self) -> int:
        """Return the number of cards not yet handed out."""
        return len(self._cards) - self._index


def shuffle(cards: Iterable[CardState], rng: random.Random | None = None) -> ShuffleReview:
    """Return the cards in uniformly random order as a one-shot sequence.

    Args:
        cards: The deck's cards. The input is copied, never reordered.
        rng: Random source; a fresh unseeded one is used when omitted.
    """
    rng = rng or random.Random()
    order = list(cards)
    rng.shuffle(order)  # Fisher-Yates
    return ShuffleReview(order)
