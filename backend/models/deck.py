from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.models.base import Base, TimestampMixin

MAX_DECK_NAME_LENGTH = 20


class Deck(Base, TimestampMixin):
    __tablename__ = "decks"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(MAX_DECK_NAME_LENGTH), nullable=False)
    owner: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    cards: Mapped[list["Card"]] = relationship(  # type: ignore[name-defined] # noqa: F821
        back_populates="deck", cascade="all, delete-orphan"
    )
