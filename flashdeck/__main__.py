"""CLI interface for Flashdeck.

Usage:
    python -m flashdeck decks                      List your decks
    python -m flashdeck deck-add "Spanish"         Create a deck
    python -m flashdeck add 1 "hola" "hello"       Add a card to deck 1
    python -m flashdeck import 1 cards.json        Import cards from JSON
    python -m flashdeck study 1                    Study due cards in deck 1
    python -m flashdeck practice 1                 Shuffle through deck 1
    python -m flashdeck stats 1                    Show deck statistics
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from backend.config import settings
from backend.database import engine, init_db
from backend.schemas import parse_card_import
from backend.srs.errors import FlashdeckError, InvalidInputError
from backend.srs.scheduler import Grade, Stage
from backend.srs.session import ReviewService
from backend.store import CardStore

logger = logging.getLogger(__name__)


async def ensure_db() -> None:
    """Create the data directory and tables if they don't exist."""
    if settings.database_url.startswith("sqlite"):
        path = settings.database_url.split(":///", 1)[-1]
        if path and path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
    await init_db()


def ask(prompt: str) -> str:
    """Read a line from the user. End of input reads as quit."""
    try:
        return input(prompt).strip()
    except EOFError:
        print()
        return "q"


def make_service() -> ReviewService:
    store = CardStore(config=settings.scheduler_config())
    return ReviewService(store)


async def cmd_decks(args: argparse.Namespace) -> None:
    """List the owner's decks."""
    store = CardStore()
    decks = await store.list_decks(settings.default_owner)
    if not decks:
        print("  No decks yet. Create one with 'deck-add'.")
        return
    for deck in decks:
        count = await store.count_cards(deck.id)
        print(f"  [{deck.id}] {deck.name:<20} {count} cards")


async def cmd_deck_add(args: argparse.Namespace) -> None:
    deck = await CardStore().create_deck(args.name, settings.default_owner)
    print(f"  Created deck [{deck.id}] {deck.name}")


async def cmd_deck_rename(args: argparse.Namespace) -> None:
    deck = await CardStore().rename_deck(args.deck_id, args.name)
    print(f"  Renamed deck [{deck.id}] to {deck.name}")


async def cmd_deck_delete(args: argparse.Namespace) -> None:
    store = CardStore()
    deck = await store.get_deck(args.deck_id)
    if not args.yes:
        answer = ask(f"  Delete deck '{deck.name}' and all its cards? [y/N] ")
        if answer.lower() != "y":
            print("  Cancelled.")
            return
    deleted = await store.delete_deck(args.deck_id)
    print(f"  Deleted deck '{deck.name}' ({deleted} cards)")


async def cmd_cards(args: argparse.Namespace) -> None:
    """List the cards in a deck with their scheduling state."""
    store = CardStore()
    await store.get_deck(args.deck_id)
    cards = await store.list_by_deck(args.deck_id)
    if not cards:
        print("  This deck has no cards.")
        return
    for card in cards:
        print(
            f"  [{card.id}] {card.front} / {card.back}  "
            f"({card.stage.value}, due {card.due:%Y-%m-%d %H:%M}, "
            f"ivl {card.interval_days}d, ease {card.ease_factor})"
        )


async def cmd_add(args: argparse.Namespace) -> None:
    card = await CardStore(config=settings.scheduler_config()).create_card(
        args.deck_id, args.front, args.back
    )
    print(f"  Added card [{card.id}] (ready to study)")


async def cmd_edit(args: argparse.Namespace) -> None:
    card = await CardStore().update_fields(args.card_id, front=args.front, back=args.back)
    print(f"  [{card.id}] {card.front} / {card.back}")


async def cmd_rm(args: argparse.Namespace) -> None:
    await CardStore().delete(args.card_id)
    print(f"  Deleted card [{args.card_id}]")


async def cmd_import(args: argparse.Namespace) -> None:
    """Add every card from a JSON file to a deck."""
    try:
        raw = Path(args.file).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise InvalidInputError(f"Cannot read {args.file}: {exc}") from exc
    items = parse_card_import(raw)
    store = CardStore(config=settings.scheduler_config())
    await store.get_deck(args.deck_id)
    for item in items:
        await store.create_card(args.deck_id, item.front, item.back)
    print(f"  Imported {len(items)} cards into deck {args.deck_id}")


async def cmd_study(args: argparse.Namespace) -> None:
    """Run an interactive study session over the cards due in a deck."""
    service = make_service()
    deck = await service.store.get_deck(args.deck_id)

    print(f"\n  Studying '{deck.name}'")
    print("  Grades: 1=Again  2=Hard  3=Good  4=Easy")
    print("  Type 'q' to quit\n")

    while service.stats.cards_reviewed < args.max_cards:
        card = await service.next_card(args.deck_id)
        if card is None:
            print("  No cards to study in this deck right now. Check back later!")
            break

        label = f"  [{card.stage.value}]"
        print(label)
        print(f"  {card.front}")
        if ask("\n  Press enter to reveal ").lower() == "q":
            break
        print(f"  {card.back}\n")

        grade = None
        while grade is None:
            raw = ask("  Grade [1-4]: ")
            if raw.lower() == "q":
                break
            try:
                grade = Grade.parse(raw)
            except FlashdeckError:
                print("  Please enter 1, 2, 3 or 4.")
        if grade is None:
            break

        updated = await service.grade(card.id, grade)
        if updated.stage == Stage.REVIEW:
            print(f"  Next review in {updated.interval_days:.1f} days\n")
        else:
            print(f"  Again at {updated.due:%H:%M}\n")

    stats = service.stats
    print("\n  Session Complete!")
    print(f"  Reviewed: {stats.cards_reviewed}  Recalled: {stats.correct}\n")


async def cmd_practice(args: argparse.Namespace) -> None:
    """Walk through a shuffled deck without rescheduling anything."""
    service = make_service()
    deck = await service.store.get_deck(args.deck_id)
    run = await service.practice(args.deck_id)
    if not len(run):
        print(f'  No cards in "{deck.name}" to practice.')
        return

    print(f"\n  Practicing '{deck.name}' ({len(run)} cards, nothing is rescheduled)\n")
    for card in run:
        print(f"  [{run.position}/{len(run)}] {card.front}")
        if ask("  Press enter to reveal ").lower() == "q":
            return
        print(f"  {card.back}\n")
        if run.remaining and ask("  Enter for next card ").lower() == "q":
            return
    print("  You've practiced all cards in this deck!\n")


async def cmd_stats(args: argparse.Namespace) -> None:
    """Show deck statistics."""
    service = make_service()
    deck = await service.store.get_deck(args.deck_id)
    stats = await service.deck_stats(args.deck_id)
    counts = stats.counts

    print(f"\n  Deck Statistics: {deck.name}")
    print(f"  {'Total cards:':<20} {counts.total}")
    print(f"  {'New:':<20} {counts.new}")
    print(f"  {'Learning:':<20} {counts.learning}")
    print(f"  {'Review:':<20} {counts.review}")
    print(f"  {'Lapsed:':<20} {counts.lapsed}")
    print(f"  {'Due now:':<20} {counts.due}")
    print(f"  {'Total reviews:':<20} {stats.total_reviews}")
    print()


async def cmd_due(args: argparse.Namespace) -> None:
    """Show how many cards are due."""
    service = make_service()
    counts = (await service.deck_stats(args.deck_id)).counts
    print(f"  {counts.due} cards due, {counts.new} new cards available")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flashdeck",
        description=f"{settings.app_name} spaced-repetition flashcards",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # decks
    subparsers.add_parser("decks", help="List your decks")

    deck_add = subparsers.add_parser("deck-add", help="Create a deck")
    deck_add.add_argument("name", help="Deck name (up to 20 characters)")

    deck_rename = subparsers.add_parser("deck-rename", help="Rename a deck")
    deck_rename.add_argument("deck_id", type=int)
    deck_rename.add_argument("name")

    deck_delete = subparsers.add_parser("deck-delete", help="Delete a deck and its cards")
    deck_delete.add_argument("deck_id", type=int)
    deck_delete.add_argument("-y", "--yes", action="store_true", help="Skip confirmation")

    # cards
    cards = subparsers.add_parser("cards", help="List the cards in a deck")
    cards.add_argument("deck_id", type=int)

    add = subparsers.add_parser("add", help="Add a card")
    add.add_argument("deck_id", type=int)
    add.add_argument("front", help="Text shown before reveal")
    add.add_argument("back", help="Text shown after reveal")

    edit = subparsers.add_parser("edit", help="Edit a card's text")
    edit.add_argument("card_id", type=int)
    edit.add_argument("--front", default=None)
    edit.add_argument("--back", default=None)

    rm = subparsers.add_parser("rm", help="Delete a card")
    rm.add_argument("card_id", type=int)

    imp = subparsers.add_parser("import", help="Import cards from a JSON file")
    imp.add_argument("deck_id", type=int)
    imp.add_argument("file", help='JSON list of {"front": ..., "back": ...}')

    # studying
    study = subparsers.add_parser("study", help="Study due cards")
    study.add_argument("deck_id", type=int)
    study.add_argument(
        "--max-cards",
        type=int,
        default=settings.max_cards_per_session,
        help="Max grades per session",
    )

    practice = subparsers.add_parser("practice", help="Shuffle through a deck without grading")
    practice.add_argument("deck_id", type=int)

    stats = subparsers.add_parser("stats", help="Show deck statistics")
    stats.add_argument("deck_id", type=int)

    due = subparsers.add_parser("due", help="Show cards due for study")
    due.add_argument("deck_id", type=int)

    return parser


COMMANDS = {
    "decks": cmd_decks,
    "deck-add": cmd_deck_add,
    "deck-rename": cmd_deck_rename,
    "deck-delete": cmd_deck_delete,
    "cards": cmd_cards,
    "add": cmd_add,
    "edit": cmd_edit,
    "rm": cmd_rm,
    "import": cmd_import,
    "study": cmd_study,
    "practice": cmd_practice,
    "stats": cmd_stats,
    "due": cmd_due,
}


async def run(args: argparse.Namespace) -> None:
    try:
        await ensure_db()
        await COMMANDS[args.command](args)
    finally:
        await engine.dispose()


def main(argv: list[str] | None = None) -> int:
    """Entry point for the Flashdeck CLI application."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    if not args.command:
        parser.print_help()
        return 0

    try:
        asyncio.run(run(args))
    except FlashdeckError as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"  Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
