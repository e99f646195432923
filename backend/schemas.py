"""Pydantic schemas for importing cards from JSON files."""

from pydantic import BaseModel, ValidationError, field_validator

from backend.srs.errors import InvalidInputError


class CardImport(BaseModel):
    """One front/back pair to add to a deck."""

    front: str
    back: str

    @field_validator("front", "back")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class DeckImport(BaseModel):
    """A batch of cards, as written by hand or produced by other tools."""

    cards: list[CardImport]


def parse_card_import(raw: str) -> list[CardImport]:
    """Parse a JSON import file.

    Accepts either ``{"cards": [...]}`` or a bare list of
    ``{"front": ..., "back": ...}`` objects.

    Raises:
        InvalidInputError: If the JSON is malformed or any card is blank.
    """
    text = raw.strip()
    if text.startswith("["):
        text = f'{{"cards": {text}}}'
    try:
        return DeckImport.model_validate_json(text).cards
    except ValidationError as exc:
        raise InvalidInputError(f"Invalid card import: {exc.error_count()} error(s)\n{exc}") from exc
