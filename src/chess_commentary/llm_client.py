from __future__ import annotations
"""
LLM client facade over an OpenAI-compatible chat endpoint (configurable base URL).

The rest of the code should not care which SDK is in use. This module sends
``model`` + ``messages`` and returns the raw text of the reply.
"""
from functools import lru_cache
from typing import Dict, List, Optional
import logging
import random
import time

from openai import OpenAI

from .config import SETTINGS

log = logging.getLogger("llm_client")

OVERLOAD_MARKERS = ("overloaded", "529")


class AnalysisRequestError(RuntimeError):
    """The model could not be reached or returned nothing usable."""


@lru_cache(maxsize=1)
def _client() -> OpenAI:
    return OpenAI(api_key=SETTINGS.llm_api_key or None, base_url=SETTINGS.api_base or None)


def _is_overload(exc: Exception) -> bool:
    text = str(exc).lower()
    return getattr(exc, "status_code", None) == 529 or any(m in text for m in OVERLOAD_MARKERS)


def _complete(messages: List[Dict[str, str]], model: str) -> str:
    delay = 0.5
    last_exc: Optional[Exception] = None
    for attempt in range(SETTINGS.responses_retries + 1):
        try:
            rsp = _client().chat.completions.create(
                model=model,
                messages=messages,
                temperature=0.5,
                timeout=SETTINGS.responses_timeout_s,
            )
            text = _extract_text(rsp)
            if text:
                return text.strip()
            last_exc = AnalysisRequestError("empty reply")
        except Exception as exc:
            last_exc = exc
            if _is_overload(exc):
                break
        if attempt < SETTINGS.responses_retries:
            sleep_s = delay * (2 ** attempt) * (0.8 + 0.4 * random.random())
            time.sleep(min(sleep_s, 10.0))
    raise AnalysisRequestError(str(last_exc)) from last_exc


def request_analysis(messages: List[Dict[str, str]], model: Optional[str] = None) -> str:
    """Send the analysis conversation; falls back to the secondary model when the primary is overloaded."""
    model = model or SETTINGS.model
    try:
        return _complete(messages, model)
    except AnalysisRequestError as exc:
        fallback = SETTINGS.fallback_model
        if not fallback or fallback == model or not _is_overload(exc.__cause__ or exc):
            log.error("Analysis request failed: %s", exc)
            raise
        log.warning("Model %s overloaded, retrying with %s", model, fallback)
        return _complete(messages, fallback)


def _extract_text(rsp) -> str:
    try:
        if hasattr(rsp, "choices") and rsp.choices:
            msg = rsp.choices[0].message
            content = getattr(msg, "content", None)
            if isinstance(content, str):
                return content
            if isinstance(content, list):
                parts = []
                for c in content:
                    if isinstance(c, dict):
                        if c.get("type") == "text" and isinstance(c.get("text"), str):
                            parts.append(c["text"])
                        continue
                    t = getattr(c, "text", None)
                    if isinstance(t, str):
                        parts.append(t)
                if parts:
                    return "\n".join(parts)
    except (AttributeError, IndexError, TypeError):
        log.exception("Failed to extract text from response")
    return ""
