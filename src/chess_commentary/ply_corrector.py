"""
Verification realization: correct moment plies against the rules-engine history
before the analysis is cached or returned. No tree interaction.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from .aligner import align
from .config import SETTINGS
from .history import CanonicalHistoryProvider, InvalidTranscript
from .models import Correction, CorrectionResult, Moment

log = logging.getLogger("ply_corrector")


def _ply_sort_key(moment: Moment) -> tuple[bool, int]:
    return (moment.ply is None, moment.ply or 0)


class PlyCorrector:
    def __init__(
        self,
        provider: Optional[CanonicalHistoryProvider] = None,
        tolerance: Optional[int] = None,
        allow_uncorroborated_fallback: Optional[bool] = None,
    ):
        self.provider = provider or CanonicalHistoryProvider()
        self.tolerance = SETTINGS.verification_tolerance if tolerance is None else tolerance
        self.allow_fallback = (
            SETTINGS.verification_fallback if allow_uncorroborated_fallback is None else allow_uncorroborated_fallback
        )

    def correct(self, transcript: str, moments: Sequence[Moment]) -> CorrectionResult:
        """Rewrite each aligned moment's ply to its canonical slot.

        Fail-soft: an invalid transcript returns the moments unchanged with no corrections.
        """
        try:
            history = self.provider.resolve(transcript)
        except InvalidTranscript as exc:
            log.warning("Skipping ply correction: %s", exc)
            return CorrectionResult(moments=list(moments), corrections=[])

        result = align(history, moments, self.tolerance, allow_uncorroborated_fallback=self.allow_fallback)

        corrected: List[Moment] = []
        corrections: List[Correction] = []
        for ply, aligned in result.slots.items():
            moment = aligned.moment
            if moment.ply != ply:
                move = history.move_at(ply)
                corrections.append(Correction(moment.ply, ply, move.san if move else moment.move))
                moment = moment.with_ply(ply)
            corrected.append(moment)
        corrected.extend(result.unresolved)
        corrected.sort(key=_ply_sort_key)

        if corrections:
            log.info("Corrected %d moment plies", len(corrections))
        return CorrectionResult(moments=corrected, corrections=corrections)


def correct(transcript: str, moments: Sequence[Moment]) -> CorrectionResult:
    return PlyCorrector().correct(transcript, moments)
