"""
Prompt builders for the game-analysis request.

The user prompt is language-neutral; the reply language is steered through the
system instruction for the requested locale.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List

LOCALE_LANGUAGES: Dict[str, str] = {"de": "German", "en": "English"}

DEFAULT_SYSTEM = (
    "You are an experienced chess coach who writes precise, clear and vivid game analyses. "
    "Your language is plain and easy to follow, uses the occasional image, stays factual and avoids exaggeration. "
    "Answer in {LANGUAGE}."
)

DEFAULT_TEMPLATE = """You are a chess expert. Analyze the following game and respond exclusively with one valid JSON object.
No comments, no introduction and no text outside the JSON. Use double quotes only and no trailing commas.

Example:
{
  "summary": "string",
  "moments": [
    {"ply": 1, "move": "string", "color": "white|black", "comment": "string", "recommendation": "string", "reasoning": "string"}
  ]
}

1. "summary": who held the initiative and when, what was strategically interesting, where the decisive turning
   point was and what the player can learn. Refer to moves as [14. Nf3] for White or [14... Nf6] for Black.
2. "moments": the 5 to 10 most instructive moves, each with
   - "ply": half-move number counted from 1 (1 = White's first move, 2 = Black's first move, 14 = 7... for Black)
   - "move": the move played, in SAN (e.g. Nf3, Qxd5, O-O)
   - "color": "white" or "black"
   - "comment": why the move matters
   - "recommendation": (optional) a better move if the played one was not best
   - "reasoning": (optional) why the recommendation is better

Write for advanced beginners up to club level (around 1400 Elo).

Game (PGN):
{PGN}"""


@dataclass
class PromptConfig:
    """Configuration for shaping the analysis prompt."""

    system_instructions: str = DEFAULT_SYSTEM
    template: str = DEFAULT_TEMPLATE


def render_custom_prompt(template: str, values: Dict[str, str]) -> str:
    """Replace known placeholders in the template. Unknown tokens are left intact."""
    rendered = template or ""
    for key, val in values.items():
        rendered = rendered.replace(f"{{{key}}}", val)
    return rendered


def build_analysis_messages(pgn: str, locale: str, cfg: PromptConfig | None = None) -> List[Dict[str, str]]:
    cfg = cfg or PromptConfig()
    language = LOCALE_LANGUAGES.get(locale, "English")
    return [
        {"role": "system", "content": render_custom_prompt(cfg.system_instructions, {"LANGUAGE": language})},
        {"role": "user", "content": render_custom_prompt(cfg.template, {"PGN": pgn})},
    ]
