"""Exception hierarchy for the scheduler and its card store."""


class FlashdeckError(Exception):
    """Base class for all Flashdeck errors."""


class InvalidInputError(FlashdeckError, ValueError):
    """A grade, stage, learning step or card field is malformed.

    Raised for caller errors only; never retried.
    """


class StoreError(FlashdeckError):
    """The card store failed to read or write."""


class CardNotFoundError(StoreError):
    def __init__(self, card_id: int) -> None:
        super().__init__(f"Card {card_id} not found")
        self.card_id = card_id


class DeckNotFoundError(StoreError):
    def __init__(self, deck_id: int) -> None:
        super().__init__(f"Deck {deck_id} not found")
        self.deck_id = deck_id
