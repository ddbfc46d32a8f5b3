"""
Verification request flow: cache lookup → model request → extraction → ply correction → cache store.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from .cache import AnalysisCache, normalize_transcript
from .config import SETTINGS
from .extraction import parse_analysis
from .llm_client import request_analysis
from .ply_corrector import PlyCorrector
from .prompting import build_analysis_messages

log = logging.getLogger("service")

Fetcher = Callable[[List[Dict[str, str]]], str]


def resolve_locale(locale: Optional[str]) -> str:
    key = (locale or "").strip().lower()
    return key if key in SETTINGS.supported_locales else SETTINGS.default_locale


class AnalysisService:
    def __init__(
        self,
        cache: Optional[AnalysisCache] = None,
        corrector: Optional[PlyCorrector] = None,
        fetch: Optional[Fetcher] = None,
    ):
        self.cache = cache or AnalysisCache()
        self.corrector = corrector or PlyCorrector()
        self.fetch = fetch or request_analysis

    def check_cache(self, pgn: str, locale: Optional[str] = None) -> Optional[Dict[str, Any]]:
        hit = self.cache.get(normalize_transcript(pgn), resolve_locale(locale))
        if hit is None:
            return None
        return {**hit, "cached": True}

    def analyze(self, pgn: str, locale: Optional[str] = None) -> Dict[str, Any]:
        """Analysis response for ``pgn``; raises AnalysisRequestError when the model call fails."""
        transcript = normalize_transcript(pgn)
        loc = resolve_locale(locale)
        cached = self.check_cache(transcript, loc)
        if cached is not None:
            log.info("Cache hit for analysis request")
            return cached

        log.info("Cache miss, requesting analysis (locale=%s)", loc)
        raw = self.fetch(build_analysis_messages(transcript, loc))
        parsed = parse_analysis(raw)
        corrected = self.corrector.correct(transcript, parsed.moments)
        response = {
            "ok": True,
            "summary": parsed.summary,
            **corrected.to_dict(),
            "cached": False,
        }
        self.cache.put(transcript, loc, response)
        return response
