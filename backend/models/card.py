"""Flashcard model holding content and scheduling state."""

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.config import utcnow
from backend.models.base import Base, TimestampMixin
from backend.srs.scheduler import CardState, Stage


class Card(Base, TimestampMixin):
    """A front/back flashcard with its scheduling state."""

    __tablename__ = "cards"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    deck_id: Mapped[int] = mapped_column(ForeignKey("decks.id"), nullable=False, index=True)
    front: Mapped[str] = mapped_column(Text, nullable=False)
    back: Mapped[str] = mapped_column(Text, nullable=False)
    stage: Mapped[str] = mapped_column(String(20), nullable=False, default=Stage.NEW.value)
    due: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    interval_days: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    ease_factor: Mapped[float] = mapped_column(Float, nullable=False, default=2.5)
    learning_step: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lapses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    deck: Mapped["Deck"] = relationship(back_populates="cards")  # type: ignore[name-defined] # noqa: F821
    review_logs: Mapped[list["ReviewLog"]] = relationship(  # type: ignore[name-defined] # noqa: F821
        back_populates="card", cascade="all, delete-orphan"
    )

    def to_state(self) -> CardState:
        """Return an immutable snapshot of this row."""
        return CardState(
            id=self.id,
            deck_id=self.deck_id,
            front=self.front,
            back=self.back,
            stage=Stage(self.stage),
            due=self.due,
            interval_days=self.interval_days,
            ease_factor=self.ease_factor,
            learning_step=self.learning_step,
            lapses=self.lapses,
            created_at=self.created_at,
        )

    def apply_state(self, state: CardState) -> None:
        """Copy the scheduling fields of a graded snapshot onto this row."""
        self.stage = state.stage.value
        self.due = state.due
        self.interval_days = state.interval_days
        self.ease_factor = state.ease_factor
        self.learning_step = state.learning_step
        self.lapses = state.lapses
