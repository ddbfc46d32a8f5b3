"""
Decode model output into the strict Moment shape before it reaches the aligner.

Flow:
1) Look for JSON: fenced ```json blocks, the whole text, then the first balanced {...} in prose.
2) Each candidate is tried as-is, then after light repair (doubled, trailing and leading commas).
3) If nothing parses and LLM repair is enabled, ask a tiny guard Agent (Agents SDK) to re-emit the JSON.
4) Unwrap the known envelopes and decode each moment record; malformed records are dropped.
"""
from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Tuple

from agents import Agent, ModelSettings, Runner

from .config import SETTINGS
from .models import Moment
from .notation import clean_move_text

log = logging.getLogger("extraction")

FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)
_MOMENT_KEYS = {"ply", "move", "san", "color"}
_WHITE = {"white", "w", "weiss", "weiß"}
_BLACK = {"black", "b", "schwarz"}

INSTRUCTIONS = (
    "You receive the raw reply of a chess analysis request.\n"
    "Return ONLY a valid JSON object with the keys summary (string) and moments (array of objects with ply, move,"
    " color, comment and optional recommendation and reasoning). Keep the original wording. If the reply holds no"
    " analysis, output the single word NONE."
)

json_guard = Agent(
    name="AnalysisJsonGuard",
    instructions=INSTRUCTIONS,
    model_settings=ModelSettings(temperature=0.0),
)


@dataclass
class ParsedAnalysis:
    summary: str = ""
    moments: List[Moment] = field(default_factory=list)


async def _agent_repair(raw_reply: str) -> str:
    user = f"RAW REPLY:\n{raw_reply}\nReturn only the JSON object or NONE:"
    result = await Runner.run(json_guard, user)
    return (result.final_output or "").strip()


def fix_json_content(text: str) -> str:
    """Repair the defects models commonly produce; unbalanced quotes are left alone."""
    fixed = re.sub(r",\s*,", ",", text)
    fixed = re.sub(r",\s*([}\]])", r"\1", fixed)
    fixed = re.sub(r"([{\[])\s*,", r"\1", fixed)
    if len(re.findall(r'(?<!\\)"', fixed)) % 2:
        log.debug("Unbalanced quotes in JSON candidate")
    return fixed


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None


def _first_object(text: str) -> Optional[str]:
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for pos in range(start, len(text)):
            ch = text[pos]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
            elif ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start:pos + 1]
        start = text.find("{", start + 1)
    return None


def extract_json(text: str) -> Any:
    """Best-effort JSON value from free text; None when nothing decodes."""
    if not text:
        return None
    candidates = [m.group(1).strip() for m in FENCE_RE.finditer(text)]
    candidates.append(text.strip())
    obj = _first_object(text)
    if obj:
        candidates.append(obj)
    for cand in candidates:
        for attempt in (cand, fix_json_content(cand)):
            value = _loads(attempt)
            if isinstance(value, (dict, list)):
                return value
    return None


def _unwrap(obj: Any) -> Tuple[str, Any]:
    if isinstance(obj, list):
        return "", obj
    if not isinstance(obj, Mapping):
        return "", []
    original = obj.get("originalResponse")
    if isinstance(original, Mapping) and isinstance(original.get("analysis"), Mapping):
        inner = original["analysis"]
    elif obj.get("summary"):
        inner = obj
    elif isinstance(obj.get("data"), Mapping):
        inner = obj["data"]
    elif isinstance(obj.get("analysis"), Mapping):
        inner = obj["analysis"]
    else:
        inner = obj
    return str(inner.get("summary") or ""), inner.get("moments") or []


def _decode_ply(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, int) and value >= 1:
        return value
    return None


def _decode_color(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    key = value.strip().lower()
    if key in _WHITE:
        return "white"
    if key in _BLACK:
        return "black"
    return None


def decode_moment(raw: Any) -> Optional[Moment]:
    """Strict Moment from one untrusted record; None when it carries no usable reference."""
    if not isinstance(raw, Mapping):
        return None
    ply = _decode_ply(raw.get("ply"))
    move_raw = raw.get("move") if raw.get("move") is not None else raw.get("san")
    move = clean_move_text(move_raw) if isinstance(move_raw, str) else None
    if ply is None and move is None:
        return None
    commentary = {k: v for k, v in raw.items() if k not in _MOMENT_KEYS}
    return Moment(ply=ply, move=move, color=_decode_color(raw.get("color")), commentary=commentary)


def decode_moments(raw_list: Any) -> List[Moment]:
    if not isinstance(raw_list, list):
        return []
    moments = [m for m in (decode_moment(r) for r in raw_list) if m is not None]
    dropped = len(raw_list) - len(moments)
    if dropped:
        log.info("Dropped %d malformed moment records", dropped)
    return moments


def parse_analysis(payload: Any, use_repair_agent: Optional[bool] = None) -> ParsedAnalysis:
    """Summary text and decoded moments from a raw reply or an already-decoded envelope."""
    use_repair_agent = SETTINGS.use_repair_agent if use_repair_agent is None else use_repair_agent
    if isinstance(payload, (dict, list)):
        obj = payload
        raw_text = ""
    else:
        raw_text = str(payload or "")
        obj = extract_json(raw_text)
        if obj is None and use_repair_agent and raw_text.strip():
            try:
                obj = extract_json(asyncio.run(_agent_repair(raw_text)))
            except Exception:
                log.exception("JSON guard agent failed")
    if obj is None:
        return ParsedAnalysis(summary=raw_text.strip(), moments=[])

    summary, raw_moments = _unwrap(obj)
    # cached responses sometimes carry the whole JSON document inside "summary"
    if summary and not raw_moments and ("```" in summary or summary.lstrip().startswith("{")):
        inner = extract_json(summary)
        if isinstance(inner, Mapping) and inner.get("summary"):
            summary, raw_moments = _unwrap(inner)
    return ParsedAnalysis(summary=summary.strip(), moments=decode_moments(raw_moments))
