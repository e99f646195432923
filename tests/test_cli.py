"""Tests for CLI commands (non-interactive paths)."""

import json

import pytest

from backend.database import engine
from flashdeck.__main__ import build_parser, ensure_db, main


@pytest.mark.asyncio
async def test_ensure_db() -> None:
    """Database tables can be created."""
    try:
        await ensure_db()
        # Idempotent
        await ensure_db()
    finally:
        await engine.dispose()


def test_parser_knows_every_command() -> None:
    parser = build_parser()
    args = parser.parse_args(["study", "3", "--max-cards", "5"])
    assert args.command == "study"
    assert args.deck_id == 3
    assert args.max_cards == 5


def test_no_command_prints_help(capsys) -> None:
    assert main([]) == 0
    assert "usage" in capsys.readouterr().out.lower()


def test_deck_and_card_workflow(tmp_path, capsys) -> None:
    assert main(["deck-add", "CLI Deck"]) == 0
    out = capsys.readouterr().out
    deck_id = int(out.split("[")[1].split("]")[0])

    assert main(["add", str(deck_id), "hola", "hello"]) == 0

    cards_file = tmp_path / "cards.json"
    cards_file.write_text(
        json.dumps([{"front": "uno", "back": "one"}, {"front": "dos", "back": "two"}]),
        encoding="utf-8",
    )
    assert main(["import", str(deck_id), str(cards_file)]) == 0
    assert "Imported 2 cards" in capsys.readouterr().out

    assert main(["stats", str(deck_id)]) == 0
    out = capsys.readouterr().out
    assert "Total cards:" in out
    assert " 3\n" in out

    assert main(["due", str(deck_id)]) == 0
    assert "0 cards due, 3 new cards available" in capsys.readouterr().out


def test_errors_exit_non_zero(capsys) -> None:
    assert main(["stats", "987654"]) == 1
    assert "Deck 987654 not found" in capsys.readouterr().err


def test_blank_import_rejected(tmp_path, capsys) -> None:
    main(["deck-add", "Blank"])
    deck_id = int(capsys.readouterr().out.split("[")[1].split("]")[0])
    cards_file = tmp_path / "bad.json"
    cards_file.write_text(json.dumps([{"front": " ", "back": "x"}]), encoding="utf-8")

    assert main(["import", str(deck_id), str(cards_file)]) == 1
    assert "Invalid card import" in capsys.readouterr().err


def _new_deck(name: str, capsys) -> int:
    main(["deck-add", name])
    return int(capsys.readouterr().out.split("[")[1].split("]")[0])


def test_unreadable_import_file(tmp_path, capsys) -> None:
    deck_id = _new_deck("Files", capsys)

    assert main(["import", str(deck_id), str(tmp_path / "missing.json")]) == 1
    assert "Cannot read" in capsys.readouterr().err

    latin = tmp_path / "latin1.json"
    latin.write_bytes('[{"front": "caf\xe9", "back": "coffee"}]'.encode("latin-1"))
    assert main(["import", str(deck_id), str(latin)]) == 1
    assert "Cannot read" in capsys.readouterr().err


def _end_of_input(prompt: str = "") -> str:
    raise EOFError


def test_study_ends_cleanly_at_end_of_input(monkeypatch, capsys) -> None:
    deck_id = _new_deck("EOF", capsys)
    main(["add", str(deck_id), "hola", "hello"])
    monkeypatch.setattr("builtins.input", _end_of_input)

    assert main(["study", str(deck_id)]) == 0
    out = capsys.readouterr().out
    assert "Session Complete" in out
    assert "Reviewed: 0" in out


def test_practice_ends_cleanly_at_end_of_input(monkeypatch, capsys) -> None:
    deck_id = _new_deck("EOF practice", capsys)
    main(["add", str(deck_id), "hola", "hello"])
    monkeypatch.setattr("builtins.input", _end_of_input)

    assert main(["practice", str(deck_id)]) == 0


def test_deck_delete_cancelled_at_end_of_input(monkeypatch, capsys) -> None:
    deck_id = _new_deck("Keep me", capsys)
    monkeypatch.setattr("builtins.input", _end_of_input)

    assert main(["deck-delete", str(deck_id)]) == 0
    assert "Cancelled" in capsys.readouterr().out


def test_help_uses_app_name(capsys) -> None:
    with pytest.raises(SystemExit):
        main(["--help"])
    assert "Flashdeck spaced-repetition flashcards" in capsys.readouterr().out
