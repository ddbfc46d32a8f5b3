"""
File-backed analysis cache.

One JSON file per key (md5 of the normalized transcript and locale) holding
``{"timestamp": ..., "response": {...}}``. Entries older than the TTL are treated as
misses and overwritten on the next store. I/O failures never propagate.
"""
from __future__ import annotations

import hashlib
import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, Optional

from .config import SETTINGS

log = logging.getLogger("cache")


def normalize_transcript(transcript: str) -> str:
    return (transcript or "").strip()


class AnalysisCache:
    def __init__(self, cache_dir: Optional[str] = None, ttl_s: Optional[float] = None):
        self.root = Path(cache_dir or SETTINGS.cache_dir)
        self.ttl_s = SETTINGS.cache_ttl_s if ttl_s is None else ttl_s
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError:
            log.exception("Failed to create cache directory %s", self.root)

    def key_for(self, transcript: str, locale: str) -> str:
        raw = f"{normalize_transcript(transcript)}\n{locale}".encode("utf-8")
        return hashlib.md5(raw).hexdigest()

    def _path(self, transcript: str, locale: str) -> Path:
        return self.root / f"{self.key_for(transcript, locale)}.json"

    def get(self, transcript: str, locale: str, now: Optional[float] = None) -> Optional[Dict[str, Any]]:
        path = self._path(transcript, locale)
        if not path.exists():
            return None
        try:
            entry = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            log.exception("Failed to read cache entry %s", path.name)
            return None
        if not isinstance(entry, dict) or not isinstance(entry.get("response"), dict):
            return None
        now = time.time() if now is None else now
        if now - float(entry.get("timestamp", 0)) >= self.ttl_s:
            log.info("Cache entry %s expired", path.name)
            return None
        return entry["response"]

    def put(self, transcript: str, locale: str, response: Dict[str, Any], now: Optional[float] = None) -> None:
        path = self._path(transcript, locale)
        entry = {"timestamp": time.time() if now is None else now, "response": response}
        tmp = path.with_suffix(".tmp")
        try:
            tmp.write_text(json.dumps(entry, indent=2, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp, path)
        except OSError:
            log.exception("Failed to write cache entry %s", path.name)
