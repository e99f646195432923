"""Grading engine: maps a recall grade to a card's next scheduling state.

A step-based scheduler in the SM-2 family. Cards move through four stages:

- NEW: never studied.
- LEARNING: working through the short, minute-scale learning steps.
- REVIEW: graduated; intervals are in days and grow by the ease factor.
- LAPSED: failed while in REVIEW; working through the relearning steps.

The engine is pure. It never reads a clock or touches storage; callers
pass ``now`` explicitly and persist the returned snapshot themselves.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum, IntEnum

from backend.srs.errors import InvalidInputError

logger = logging.getLogger(__name__)

# Stored values are rounded to this many decimals so re-reads stay stable
PRECISION = 2
_QUANTUM = Decimal(1).scaleb(-PRECISION)


class Stage(str, Enum):
    """Coarse scheduling phase of a card."""

    NEW = "NEW"
    LEARNING = "LEARNING"
    REVIEW = "REVIEW"
    LAPSED = "LAPSED"


class Grade(IntEnum):
    """Self-reported recall quality: 1=Again, 2=Hard, 3=Good, 4=Easy."""

    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4

    @classmethod
    def parse(cls, value: "Grade | int | str") -> "Grade":
        """Coerce a grade name ("good") or number (3) into a Grade.

        Raises:
            InvalidInputError: If the value names no grade.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            name = value.strip().upper()
            if name in cls.__members__:
                return cls[name]
            if name.isdigit():
                value = int(name)
        if isinstance(value, int) and not isinstance(value, bool):
            try:
                return cls(value)
            except ValueError:
                pass
        raise InvalidInputError(f"Invalid grade: {value!r}")


@dataclass(frozen=True)
class SchedulerConfig:
    """Scheduling policy. Step tables are in minutes, intervals in days."""

    learning_steps: tuple[float, ...] = (1, 10)
    relearning_steps: tuple[float, ...] = (1,)
    graduating_interval_days: float = 1
    easy_interval_days: float = 4
    min_interval_after_lapse_days: float = 1
    default_ease: float = 2.5
    ease_floor: float = 1.3
    hard_ease_penalty: float = 0.15
    again_ease_penalty: float = 0.20
    easy_ease_bonus: float = 0.15
    hard_interval_multiplier: float = 1.2
    easy_bonus_multiplier: float = 1.3

    def __post_init__(self) -> None:
        for name in ("learning_steps", "relearning_steps"):
            steps = tuple(getattr(self, name))
            if not steps:
                raise ValueError(f"{name} must not be empty")
            if any(step <= 0 for step in steps):
                raise ValueError(f"{name} must contain only positive minute offsets")
            object.__setattr__(self, name, steps)
        for name in (
            "graduating_interval_days",
            "easy_interval_days",
            "min_interval_after_lapse_days",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.default_ease < self.ease_floor:
            raise ValueError("default_ease must not be below ease_floor")

    def steps_for(self, stage: Stage) -> tuple[float, ...]:
        """Return the step table in effect for a stage."""
        if stage == Stage.LAPSED:
            return self.relearning_steps
        return self.learning_steps


@dataclass(frozen=True)
class CardState:
    """An immutable snapshot of a card and its scheduling state."""

    id: int
    deck_id: int
    front: str
    back: str
    stage: Stage
    due: datetime
    interval_days: float = 0.0
    ease_factor: float = 2.5
    learning_step: int = 0
    lapses: int = 0
    created_at: datetime | None = field(default=None, compare=False)

    @property
    def is_learning(self) -> bool:
        """Return True while the card is on minute-scale steps."""
        return self.stage in (Stage.LEARNING, Stage.LAPSED)


def new_card_state(
    card_id: int,
    deck_id: int,
    front: str,
    back: str,
    now: datetime,
    config: SchedulerConfig | None = None,
) -> CardState:
    """Create the initial state for a freshly added card."""
    config = config or SchedulerConfig()
    return CardState(
        id=card_id,
        deck_id=deck_id,
        front=front,
        back=back,
        stage=Stage.NEW,
        due=now,
        interval_days=0.0,
        ease_factor=config.default_ease,
        learning_step=0,
        lapses=0,
        created_at=now,
    )


def validate_card(card: CardState, config: SchedulerConfig | None = None) -> None:
    """Check a card snapshot against the scheduling invariants.

    Raises:
        InvalidInputError: Describing the first violated invariant.
    """
    config = config or SchedulerConfig()
    if not isinstance(card.stage, Stage):
        raise InvalidInputError(f"Card {card.id}: invalid stage {card.stage!r}")
    if card.ease_factor < config.ease_floor:
        raise InvalidInputError(
            f"Card {card.id}: ease factor {card.ease_factor} below floor {config.ease_floor}"
        )
    if card.interval_days < 0:
        raise InvalidInputError(f"Card {card.id}: negative interval {card.interval_days}")
    if card.lapses < 0:
        raise InvalidInputError(f"Card {card.id}: negative lapse count {card.lapses}")
    if card.stage != Stage.REVIEW and card.interval_days != 0:
        raise InvalidInputError(
            f"Card {card.id}: interval must be 0 in stage {card.stage.value}"
        )
    if card.stage == Stage.NEW and card.lapses != 0:
        raise InvalidInputError(f"Card {card.id}: NEW card cannot have lapses")
    if card.stage == Stage.REVIEW and card.learning_step != 0:
        raise InvalidInputError(f"Card {card.id}: REVIEW card must be at learning step 0")
    if card.stage == Stage.NEW and card.learning_step != 0:
        raise InvalidInputError(f"Card {card.id}: NEW card must be at learning step 0")
    _check_step(card, config)


def _check_step(card: CardState, config: SchedulerConfig) -> None:
    if card.learning_step < 0:
        raise InvalidInputError(f"Card {card.id}: negative learning step {card.learning_step}")
    if card.stage == Stage.REVIEW:
        return
    steps = config.steps_for(card.stage)
    if card.learning_step >= len(steps):
        raise InvalidInputError(
            f"Card {card.id}: learning step {card.learning_step} out of range "
            f"for {card.stage.value} ({len(steps)} steps)"
        )


class Scheduler:
    """Applies grades to cards under a fixed SchedulerConfig."""

    def __init__(self, config: SchedulerConfig | None = None) -> None:
        self.config = config or SchedulerConfig()
        self._handlers = {
            Grade.AGAIN: self._again,
            Grade.HARD: self._hard,
            Grade.GOOD: self._good,
            Grade.EASY: self._easy,
        }

    def apply_grade(self, card: CardState, grade: Grade | int | str, now: datetime) -> CardState:
        """Apply a grade to a card and return its next snapshot.

        Args:
            card: Current card snapshot.
            grade: The learner's grade; names and 1-4 are accepted.
            now: Grading time. The new due date is computed from it.

        Returns:
            A new CardState. The input is never modified.

        Raises:
            InvalidInputError: For an unknown grade or stage, or a learning
                step outside its stage's step table.
        """
        grade = Grade.parse(grade)
        if not isinstance(card.stage, Stage):
            raise InvalidInputError(f"Card {card.id}: invalid stage {card.stage!r}")
        _check_step(card, self.config)

        updated = self._handlers[grade](card, now)
        updated = replace(
            updated,
            ease_factor=_round(updated.ease_factor),
            interval_days=_round(updated.interval_days),
        )
        logger.debug(
            "Card %s graded %s: %s -> %s, interval %.2fd, ease %.2f, due %s",
            card.id,
            grade.name,
            card.stage.value,
            updated.stage.value,
            updated.interval_days,
            updated.ease_factor,
            updated.due.isoformat(),
        )
        return updated

    # --- Grade handlers ---

    def _again(self, card: CardState, now: datetime) -> CardState:
        ease = card.ease_factor
        lapses = card.lapses
        if card.stage == Stage.REVIEW:
            lapses += 1
            ease = self._floor_ease(ease - self.config.again_ease_penalty)
        elif card.stage not in (Stage.NEW, Stage.LEARNING, Stage.LAPSED):
            raise InvalidInputError(f"Card {card.id}: invalid stage {card.stage!r}")

        # Lapse history from before this failure decides the relearning path
        stage = Stage.LAPSED if card.lapses > 0 else Stage.LEARNING
        return replace(
            card,
            stage=stage,
            learning_step=0,
            due=now + _minutes(self.config.steps_for(stage)[0]),
            interval_days=0.0,
            ease_factor=ease,
            lapses=lapses,
        )

    def _hard(self, card: CardState, now: datetime) -> CardState:
        if card.stage in (Stage.NEW, Stage.LEARNING, Stage.LAPSED):
            steps = self.config.steps_for(card.stage)
            return replace(card, due=now + _minutes(steps[card.learning_step]))
        if card.stage == Stage.REVIEW:
            # Stretches the interval only; the card keeps its stage
            interval = max(1.0, card.interval_days * self.config.hard_interval_multiplier)
            return replace(
                card,
                interval_days=interval,
                due=now + _days(interval),
                ease_factor=self._floor_ease(card.ease_factor - self.config.hard_ease_penalty),
            )
        raise InvalidInputError(f"Card {card.id}: invalid stage {card.stage!r}")

    def _good(self, card: CardState, now: datetime) -> CardState:
        if card.stage in (Stage.NEW, Stage.LEARNING):
            step = card.learning_step + 1
            steps = self.config.learning_steps
            if step < len(steps):
                return replace(
                    card, stage=Stage.LEARNING, learning_step=step, due=now + _minutes(steps[step])
                )
            return self._graduate(card, self.config.graduating_interval_days, now)
        if card.stage == Stage.LAPSED:
            step = card.learning_step + 1
            steps = self.config.relearning_steps
            if step < len(steps):
                return replace(card, learning_step=step, due=now + _minutes(steps[step]))
            return self._graduate(card, self.config.min_interval_after_lapse_days, now)
        if card.stage == Stage.REVIEW:
            interval = max(1.0, card.interval_days * card.ease_factor)
            return replace(card, interval_days=interval, due=now + _days(interval))
        raise InvalidInputError(f"Card {card.id}: invalid stage {card.stage!r}")

    def _easy(self, card: CardState, now: datetime) -> CardState:
        if card.stage in (Stage.NEW, Stage.LEARNING, Stage.LAPSED):
            return self._graduate(card, self.config.easy_interval_days, now)
        if card.stage == Stage.REVIEW:
            interval = max(
                1.0,
                card.interval_days * card.ease_factor * self.config.easy_bonus_multiplier,
            )
            return replace(
                card,
                interval_days=interval,
                due=now + _days(interval),
                ease_factor=card.ease_factor + self.config.easy_ease_bonus,
            )
        raise InvalidInputError(f"Card {card.id}: invalid stage {card.stage!r}")

    # --- Helpers ---

    def _graduate(self, card: CardState, interval_days: float, now: datetime) -> CardState:
        return replace(
            card,
            stage=Stage.REVIEW,
            interval_days=float(interval_days),
            due=now + _days(interval_days),
            learning_step=0,
        )

    def _floor_ease(self, ease: float) -> float:
        return max(self.config.ease_floor, ease)


def _round(value: float) -> float:
    """Round to PRECISION places, ties away from zero on the exact binary value."""
    return float(Decimal(value).quantize(_QUANTUM, rounding=ROUND_HALF_UP))


def _minutes(minutes: float) -> timedelta:
    return timedelta(minutes=minutes)


def _days(days: float) -> timedelta:
    return timedelta(days=days)


_default_scheduler = Scheduler()


def apply_grade(card: CardState, grade: Grade | int | str, now: datetime) -> CardState:
    """Apply a grade using the default scheduling policy."""
    return _default_scheduler.apply_grade(card, grade, now)
