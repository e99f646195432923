"""Async SQLAlchemy card and deck store.

The scheduler never persists anything itself. This store hands out
immutable CardState snapshots and writes graded snapshots back.
Database failures surface as StoreError and are never retried here.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.config import utcnow
from backend.database import async_session
from backend.models.card import Card
from backend.models.deck import MAX_DECK_NAME_LENGTH, Deck
from backend.models.review_log import ReviewLog
from backend.srs.errors import (
    CardNotFoundError,
    DeckNotFoundError,
    InvalidInputError,
    StoreError,
)
from backend.srs.scheduler import CardState, Grade, SchedulerConfig, validate_card

logger = logging.getLogger(__name__)


def clean_deck_name(name: str) -> str:
    """Trim a deck name and cut it to the maximum length.

    Raises:
        InvalidInputError: If nothing is left after trimming.
    """
    cleaned = (name or "").strip()[:MAX_DECK_NAME_LENGTH].strip()
    if not cleaned:
        raise InvalidInputError("Deck name must not be empty")
    return cleaned


class CardStore:
    """Persists decks, cards and review logs."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        config: SchedulerConfig | None = None,
    ) -> None:
        self._session_factory = session_factory or async_session
        self.config = config or SchedulerConfig()

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        """Open a session, translating database errors into StoreError."""
        try:
            async with self._session_factory() as db:
                yield db
        except SQLAlchemyError as exc:
            logger.error("Card store operation failed: %s", exc)
            raise StoreError(str(exc)) from exc

    # --- Decks ---

    async def create_deck(self, name: str, owner: str) -> Deck:
        deck = Deck(name=clean_deck_name(name), owner=owner)
        async with self._session() as db:
            db.add(deck)
            await db.commit()
            await db.refresh(deck)
        logger.info("Created deck %d '%s' for %s", deck.id, deck.name, owner)
        return deck

    async def list_decks(self, owner: str) -> list[Deck]:
        """Return an owner's decks, newest first."""
        async with self._session() as db:
            stmt = (
                select(Deck)
                .where(Deck.owner == owner)
                .order_by(Deck.created_at.desc(), Deck.id.desc())
            )
            result = await db.execute(stmt)
            return list(result.scalars().all())

    async def get_deck(self, deck_id: int) -> Deck:
        async with self._session() as db:
            deck = await db.get(Deck, deck_id)
        if deck is None:
            raise DeckNotFoundError(deck_id)
        return deck

    async def rename_deck(self, deck_id: int, name: str) -> Deck:
        cleaned = clean_deck_name(name)
        async with self._session() as db:
            deck = await db.get(Deck, deck_id)
            if deck is None:
                raise DeckNotFoundError(deck_id)
            deck.name = cleaned
            await db.commit()
            await db.refresh(deck)
        logger.info("Renamed deck %d to '%s'", deck_id, cleaned)
        return deck

    async def delete_deck(self, deck_id: int) -> int:
        """Delete a deck with all of its cards and their review logs.

        Returns:
            The number of cards deleted.
        """
        async with self._session() as db:
            deck = await db.get(Deck, deck_id)
            if deck is None:
                raise DeckNotFoundError(deck_id)
            card_ids = select(Card.id).where(Card.deck_id == deck_id)
            await db.execute(delete(ReviewLog).where(ReviewLog.card_id.in_(card_ids)))
            result = await db.execute(delete(Card).where(Card.deck_id == deck_id))
            await db.execute(delete(Deck).where(Deck.id == deck_id))
            await db.commit()
        deleted = result.rowcount or 0
        logger.info("Deleted deck %d and %d cards", deck_id, deleted)
        return deleted

    # --- Cards ---

    async def create_card(
        self,
        deck_id: int,
        front: str,
        back: str,
        now: datetime | None = None,
    ) -> CardState:
        """Add a NEW card to a deck, due immediately."""
        front = (front or "").strip()
        back = (back or "").strip()
        if not front or not back:
            raise InvalidInputError("Both front and back are required")
        now = now or utcnow()

        async with self._session() as db:
            if await db.get(Deck, deck_id) is None:
                raise DeckNotFoundError(deck_id)
            card = Card(
                deck_id=deck_id,
                front=front,
                back=back,
                due=now,
                interval_days=0.0,
                ease_factor=self.config.default_ease,
                learning_step=0,
                lapses=0,
                created_at=now,
                updated_at=now,
            )
            db.add(card)
            await db.commit()
            await db.refresh(card)
            state = card.to_state()
        logger.info("Created card %d in deck %d", state.id, deck_id)
        return state

    async def list_by_deck(self, deck_id: int) -> list[CardState]:
        """Return every card in a deck, newest first."""
        async with self._session() as db:
            stmt = (
                select(Card)
                .where(Card.deck_id == deck_id)
                .order_by(Card.created_at.desc(), Card.id.desc())
            )
            result = await db.execute(stmt)
            return [card.to_state() for card in result.scalars().all()]

    async def count_cards(self, deck_id: int) -> int:
        async with self._session() as db:
            stmt = select(func.count(Card.id)).where(Card.deck_id == deck_id)
            return (await db.execute(stmt)).scalar() or 0

    async def get(self, card_id: int) -> CardState | None:
        async with self._session() as db:
            card = await db.get(Card, card_id)
            return card.to_state() if card else None

    async def update_fields(
        self,
        card_id: int,
        front: str | None = None,
        back: str | None = None,
    ) -> CardState:
        """Edit a card's content. Blank values keep the existing text."""
        async with self._session() as db:
            card = await db.get(Card, card_id)
            if card is None:
                raise CardNotFoundError(card_id)
            if front and front.strip():
                card.front = front.strip()
            if back and back.strip():
                card.back = back.strip()
            await db.commit()
            await db.refresh(card)
            return card.to_state()

    async def write(self, state: CardState) -> None:
        """Persist the scheduling fields of a graded snapshot."""
        validate_card(state, self.config)
        async with self._session() as db:
            card = await db.get(Card, state.id)
            if card is None:
                raise CardNotFoundError(state.id)
            card.apply_state(state)
            await db.commit()

    async def delete(self, card_id: int) -> None:
        async with self._session() as db:
            await db.execute(delete(ReviewLog).where(ReviewLog.card_id == card_id))
            result = await db.execute(delete(Card).where(Card.id == card_id))
            if not result.rowcount:
                await db.rollback()
                raise CardNotFoundError(card_id)
            await db.commit()
        logger.info("Deleted card %d", card_id)

    # --- Review log ---

    async def record_grade(
        self,
        before: CardState,
        after: CardState,
        grade: Grade,
        now: datetime,
    ) -> None:
        """Write a graded snapshot and its review log in one transaction.

        If either part fails nothing is committed and the stored card keeps
        its pre-grade state.
        """
        validate_card(after, self.config)
        async with self._session() as db:
            card = await db.get(Card, after.id)
            if card is None:
                raise CardNotFoundError(after.id)
            card.apply_state(after)
            db.add(self._review_entry(before, after, grade, now))
            await db.commit()

    async def log_review(
        self,
        before: CardState,
        after: CardState,
        grade: Grade,
        now: datetime,
    ) -> None:
        async with self._session() as db:
            db.add(self._review_entry(before, after, grade, now))
            await db.commit()

    def _review_entry(
        self,
        before: CardState,
        after: CardState,
        grade: Grade,
        now: datetime,
    ) -> ReviewLog:
        return ReviewLog(
            card_id=before.id,
            deck_id=before.deck_id,
            grade=int(grade),
            stage_before=before.stage.value,
            stage_after=after.stage.value,
            interval_before=before.interval_days,
            interval_after=after.interval_days,
            ease_before=before.ease_factor,
            ease_after=after.ease_factor,
            due_after=after.due,
            reviewed_at=now,
        )

    async def count_reviews(self, deck_id: int) -> int:
        async with self._session() as db:
            stmt = select(func.count(ReviewLog.id)).where(ReviewLog.deck_id == deck_id)
            return (await db.execute(stmt)).scalar() or 0
