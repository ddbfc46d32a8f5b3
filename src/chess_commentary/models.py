"""
Records shared by the verification and presentation realizations.

All records are immutable; anything mutable used while aligning is local to one call.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence, Tuple

Color = Literal["white", "black"]
MatchPass = Literal["exact", "fuzzy", "fallback"]


def color_for_ply(ply: int) -> Color:
    """Ply 1 is White's first move; odd plies are White."""
    return "white" if ply % 2 == 1 else "black"


@dataclass(frozen=True)
class CanonicalMove:
    ply: int
    san: str
    color: Color


@dataclass(frozen=True)
class CanonicalHistory:
    """Ordered move sequence used as ground truth for alignment.

    Built from a rules engine it is gap-free (plies 1..N, alternating colors). A
    history reconstructed from a presentation tree may have holes; the aligner only
    relies on ``move_at``.
    """

    moves: Tuple[CanonicalMove, ...]
    _by_ply: Dict[int, CanonicalMove] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "moves", tuple(self.moves))
        object.__setattr__(self, "_by_ply", {m.ply: m for m in self.moves})

    @classmethod
    def from_sans(cls, sans: Sequence[str]) -> "CanonicalHistory":
        return cls(tuple(CanonicalMove(i, san, color_for_ply(i)) for i, san in enumerate(sans, start=1)))

    def move_at(self, ply: Optional[int]) -> Optional[CanonicalMove]:
        if ply is None:
            return None
        return self._by_ply.get(ply)

    @property
    def is_contiguous(self) -> bool:
        return all(m.ply == i for i, m in enumerate(self.moves, start=1)) and all(
            m.color == color_for_ply(m.ply) for m in self.moves
        )

    def __len__(self) -> int:
        return len(self.moves)


@dataclass(frozen=True)
class Moment:
    """Untrusted annotation: approximate ply, optional SAN and color, opaque commentary."""

    ply: Optional[int] = None
    move: Optional[str] = None
    color: Optional[Color] = None
    commentary: Mapping[str, Any] = field(default_factory=dict)

    def with_ply(self, ply: int) -> "Moment":
        return replace(self, ply=ply)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = dict(self.commentary)
        out["ply"] = self.ply
        if self.move is not None:
            out["move"] = self.move
        if self.color is not None:
            out["color"] = self.color
        return out


@dataclass(frozen=True)
class AlignedAnnotation:
    ply: int
    moment: Moment
    # diagnostics: which pass matched and the realized ply offset
    pass_name: MatchPass = "exact"
    offset: int = 0


@dataclass(frozen=True)
class AlignmentResult:
    slots: Mapping[int, AlignedAnnotation]
    unresolved: Tuple[Moment, ...] = ()

    def annotation_at(self, ply: int) -> Optional[AlignedAnnotation]:
        return self.slots.get(ply)


@dataclass(frozen=True)
class Correction:
    original_ply: Optional[int]
    new_ply: int
    san: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {"originalPly": self.original_ply, "newPly": self.new_ply, "san": self.san}


@dataclass(frozen=True)
class CorrectionResult:
    moments: List[Moment]
    corrections: List[Correction]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "moments": [m.to_dict() for m in self.moments],
            "corrections": [c.to_dict() for c in self.corrections],
        }
