"""Tests for next-card selection, stage counts and shuffled practice."""

import random
from datetime import datetime, timedelta

from backend.srs.queue import DeckCounts, count_stages, select_next, shuffle
from backend.srs.scheduler import CardState, Stage

NOW = datetime(2024, 3, 1, 12, 0, 0)


def _card(card_id: int, stage: Stage = Stage.NEW, due_in_minutes: float = 0, **kwargs) -> CardState:
    if stage == Stage.REVIEW:
        kwargs.setdefault("interval_days", 3.0)
    kwargs.setdefault("created_at", NOW - timedelta(days=10))
    return CardState(
        id=card_id,
        deck_id=1,
        front=f"front {card_id}",
        back=f"back {card_id}",
        stage=stage,
        due=NOW + timedelta(minutes=due_in_minutes),
        **kwargs,
    )


class TestSelectNext:
    def test_empty_deck(self) -> None:
        assert select_next([], NOW) is None

    def test_nothing_due(self) -> None:
        cards = [
            _card(1, Stage.LEARNING, due_in_minutes=5),
            _card(2, Stage.REVIEW, due_in_minutes=60 * 24),
            _card(3, Stage.LAPSED, due_in_minutes=1, lapses=1),
        ]
        assert select_next(cards, NOW) is None

    def test_learning_beats_review_and_new(self) -> None:
        cards = [
            _card(1, Stage.NEW),
            _card(2, Stage.REVIEW, due_in_minutes=-600),
            _card(3, Stage.LEARNING, due_in_minutes=-1, learning_step=1),
        ]
        assert select_next(cards, NOW).id == 3

    def test_lapsed_counts_as_learning(self) -> None:
        cards = [
            _card(1, Stage.REVIEW, due_in_minutes=-600),
            _card(2, Stage.LAPSED, due_in_minutes=-1, lapses=1),
        ]
        assert select_next(cards, NOW).id == 2

    def test_earliest_due_within_group(self) -> None:
        cards = [
            _card(1, Stage.LEARNING, due_in_minutes=-1),
            _card(2, Stage.LAPSED, due_in_minutes=-30, lapses=1),
            _card(3, Stage.LEARNING, due_in_minutes=-10),
        ]
        assert select_next(cards, NOW).id == 2

    def test_review_before_new(self) -> None:
        cards = [
            _card(1, Stage.NEW),
            _card(2, Stage.REVIEW, due_in_minutes=-5),
            _card(3, Stage.REVIEW, due_in_minutes=-50),
        ]
        assert select_next(cards, NOW).id == 3

    def test_due_exactly_now_is_eligible(self) -> None:
        cards = [_card(1, Stage.NEW), _card(2, Stage.REVIEW, due_in_minutes=0)]
        assert select_next(cards, NOW).id == 2

    def test_future_learning_card_does_not_block_review(self) -> None:
        cards = [
            _card(1, Stage.LEARNING, due_in_minutes=3),
            _card(2, Stage.REVIEW, due_in_minutes=-3),
        ]
        assert select_next(cards, NOW).id == 2

    def test_new_cards_oldest_first(self) -> None:
        cards = [
            _card(1, created_at=NOW - timedelta(days=1)),
            _card(2, created_at=NOW - timedelta(days=3)),
            _card(3, created_at=NOW - timedelta(days=2)),
        ]
        assert select_next(cards, NOW).id == 2

    def test_new_cards_selected_even_when_due_later(self) -> None:
        cards = [_card(1, due_in_minutes=60)]
        assert select_next(cards, NOW).id == 1

    def test_ties_broken_by_id(self) -> None:
        cards = [
            _card(9, Stage.REVIEW, due_in_minutes=-5),
            _card(4, Stage.REVIEW, due_in_minutes=-5),
            _card(7, Stage.REVIEW, due_in_minutes=-5),
        ]
        assert select_next(cards, NOW).id == 4
        assert select_next(list(reversed(cards)), NOW).id == 4


class TestCountStages:
    def test_counts(self) -> None:
        cards = [
            _card(1),
            _card(2),
            _card(3, Stage.LEARNING, due_in_minutes=-1),
            _card(4, Stage.REVIEW, due_in_minutes=-1),
            _card(5, Stage.REVIEW, due_in_minutes=100),
            _card(6, Stage.LAPSED, due_in_minutes=5, lapses=1),
        ]
        assert count_stages(cards, NOW) == DeckCounts(
            total=6, new=2, learning=1, review=2, lapsed=1, due=2
        )

    def test_empty(self) -> None:
        assert count_stages([], NOW) == DeckCounts()


class TestShuffle:
    def setup_method(self) -> None:
        self.cards = [_card(i) for i in range(1, 21)]

    def test_is_a_permutation(self) -> None:
        run = shuffle(self.cards, random.Random(42))
        ids = [card.id for card in run]
        assert sorted(ids) == list(range(1, 21))

    def test_different_sources_give_different_orders(self) -> None:
        first = [card.id for card in shuffle(self.cards, random.Random(1))]
        second = [card.id for card in shuffle(self.cards, random.Random(2))]
        assert first != second

    def test_same_seed_is_reproducible(self) -> None:
        first = [card.id for card in shuffle(self.cards, random.Random(7))]
        second = [card.id for card in shuffle(self.cards, random.Random(7))]
        assert first == second

    def test_one_shot(self) -> None:
        run = shuffle(self.cards[:3], random.Random(0))
        assert len(run) == 3
        assert run.remaining == 3
        next(run)
        assert run.position == 1
        assert run.remaining == 2
        assert len(list(run)) == 2
        assert list(run) == []
        assert run.remaining == 0

    def test_input_not_reordered(self) -> None:
        original = list(self.cards)
        shuffle(self.cards, random.Random(3))
        assert self.cards == original

    def test_empty_deck(self) -> None:
        run = shuffle([])
        assert len(run) == 0
        assert list(run) == []
