"""
Canonical move history from a game transcript.

Wraps python-chess: the PGN reader validates every move against the rules and
reports problems in ``game.errors`` instead of raising, so those are turned into
InvalidTranscript here. No matching logic lives in this module.
"""
from __future__ import annotations

import io
import logging

import chess
import chess.pgn

from .models import CanonicalHistory

log = logging.getLogger("history")


class InvalidTranscript(ValueError):
    """The rules engine rejected the transcript."""


class CanonicalHistoryProvider:
    """Plain adapter from a PGN (or bare SAN movetext) to CanonicalHistory."""

    def resolve(self, transcript: str) -> CanonicalHistory:
        text = (transcript or "").strip()
        if not text:
            raise InvalidTranscript("empty transcript")
        try:
            game = chess.pgn.read_game(io.StringIO(text))
        except (ValueError, KeyError) as exc:
            raise InvalidTranscript(f"unreadable transcript: {exc}") from exc
        if game is None:
            raise InvalidTranscript("no game found in transcript")
        if game.errors:
            raise InvalidTranscript(f"rules engine rejected transcript: {game.errors[0]}")

        board = game.board()
        if board.turn != chess.WHITE:
            raise InvalidTranscript("transcript starts with Black to move")

        sans: list[str] = []
        for mv in game.mainline_moves():
            sans.append(board.san(mv))
            board.push(mv)
        if not sans:
            raise InvalidTranscript("transcript contains no moves")
        log.debug("Resolved transcript to %d plies", len(sans))
        return CanonicalHistory.from_sans(sans)


def resolve(transcript: str) -> CanonicalHistory:
    return CanonicalHistoryProvider().resolve(transcript)
