"""Review service: drives the fetch, select, grade, write loop.

Sits between the pure scheduling core and the card store. Grades for the
same card are serialized so two concurrent grades from one stale snapshot
can never overwrite each other.
"""

from __future__ import annotations

import asyncio
import logging
import random
import weakref
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from backend.config import utcnow
from backend.srs.errors import CardNotFoundError
from backend.srs.queue import DeckCounts, ShuffleReview, count_stages, select_next, shuffle
from backend.srs.scheduler import CardState, Grade, Scheduler

if TYPE_CHECKING:
    from backend.store import CardStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


@dataclass
class SessionStats:
    """Running totals for the grades applied through one service."""

    cards_reviewed: int = 0
    by_grade: dict[Grade, int] = field(default_factory=lambda: {grade: 0 for grade in Grade})

    @property
    def correct(self) -> int:
        """Return how many grades counted as a successful recall."""
        return self.cards_reviewed - self.by_grade[Grade.AGAIN]

    def record(self, grade: Grade) -> None:
        self.cards_reviewed += 1
        self.by_grade[grade] += 1


@dataclass
class DeckStats:
    """Stage counts for a deck plus its review history size."""

    counts: DeckCounts
    total_reviews: int


class ReviewService:
    """Serves the next card of a deck and applies grades to it."""

    def __init__(
        self,
        store: CardStore,
        scheduler: Scheduler | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self.scheduler = scheduler or Scheduler(store.config)
        self.clock = clock
        self.stats = SessionStats()
        self._locks: weakref.WeakValueDictionary[int, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, card_id: int) -> asyncio.Lock:
        lock = self._locks.get(card_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[card_id] = lock
        return lock

    async def next_card(self, deck_id: int) -> CardState | None:
        """Return the card to study next in a deck, or None if nothing is due."""
        cards = await self.store.list_by_deck(deck_id)
        return select_next(cards, self.clock())

    async def grade(self, card_id: int, grade: Grade | int | str) -> CardState:
        """Grade a card and persist the result.

        The read, grade and write happen under the card's lock, so each
        grade sees the snapshot written by the previous one.

        Raises:
            InvalidInputError: For a malformed grade or corrupt card state.
            CardNotFoundError: If the card no longer exists.
            StoreError: If the store fails; the stored card is left as it was.
        """
        grade = Grade.parse(grade)
        async with self._lock_for(card_id):
            card = await self.store.get(card_id)
            if card is None:
                logger.warning("Cannot grade card %d: not found", card_id)
                raise CardNotFoundError(card_id)

            now = self.clock()
            updated = self.scheduler.apply_grade(card, grade, now)
            await self.store.record_grade(card, updated, grade, now)

        self.stats.record(grade)
        return updated

    async def practice(self, deck_id: int, rng: random.Random | None = None) -> ShuffleReview:
        """Return a shuffled practice run over a deck. Nothing is rescheduled."""
        cards = await self.store.list_by_deck(deck_id)
        logger.info("Started practice for deck %d: %d cards", deck_id, len(cards))
        return shuffle(cards, rng)

    async def deck_stats(self, deck_id: int) -> DeckStats:
        cards = await self.store.list_by_deck(deck_id)
        return DeckStats(
            counts=count_stages(cards, self.clock()),
            total_reviews=await self.store.count_reviews(deck_id),
        )
