"""
Elimination Generator

Builds the knockout stage that follows the groups. Each supported bracket
size maps to a fixed seeding table; later rounds reference earlier matches
by outcome ("WQF1" = winner of QF1, "LSF2" = loser of SF2) and render as
"Winner QF1" / "Loser SF2" until a result is recorded.

Categories that already carry stored elimination matches are normalized
from what was stored instead of being generated.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from tourney.services.entrant_resolver import TBD, player_text
from tourney.services.group_allocator import VALID_BRACKET_SIZES
from tourney.services.match_entry import TYPE_ELIMINATION, MatchEntry
from tourney.services.seed_resolver import pick_seed

logger = logging.getLogger(__name__)

OUTCOME_WINNER = "winner"
OUTCOME_LOSER = "loser"

STAGE_R16 = "Round of 16"
STAGE_QF = "Quarter-Final"
STAGE_SF = "Semi-Final"
STAGE_BRONZE = "Battle for Bronze"
STAGE_GOLD = "Battle for Gold"
STAGE_DEFAULT = "Elimination"

_DIRECT = re.compile(r"^([A-H])(\d+)$", re.IGNORECASE)
_OUTCOME_TOKEN = re.compile(r"^([WL])(R16-\d+|QF\d+|SF\d+)$", re.IGNORECASE)
_OUTCOME_TEXT = re.compile(r"^(Winner|Loser)\s+(R16-\d+|QF\d+|SF\d+)$", re.IGNORECASE)


@dataclass(frozen=True)
class DirectSeed:
    """Group finisher: `index` is the 1-based rank within group `letter`."""

    letter: str
    index: int

    @property
    def token(self) -> str:
        return f"{self.letter}{self.index}"


@dataclass(frozen=True)
class MatchOutcome:
    """Winner or loser of an earlier elimination match."""

    match_key: str
    outcome: str

    @property
    def code(self) -> str:
        return self.match_key.upper()

    @property
    def token(self) -> str:
        prefix = "W" if self.outcome == OUTCOME_WINNER else "L"
        return f"{prefix}{self.code}"

    @property
    def placeholder(self) -> str:
        return f"{self.outcome.capitalize()} {self.code}"


Reference = Union[DirectSeed, MatchOutcome]


def parse_reference(text: Any) -> Optional[Reference]:
    """Parse "A1", "WQF1", "LSF2", "WR16-3" or "Winner QF1" into a reference."""
    s = str(text or "").strip()
    m = _DIRECT.match(s)
    if m:
        return DirectSeed(letter=m.group(1).upper(), index=int(m.group(2)))
    m = _OUTCOME_TOKEN.match(s) or _OUTCOME_TEXT.match(s)
    if m:
        outcome = OUTCOME_WINNER if m.group(1).lower().startswith("w") else OUTCOME_LOSER
        return MatchOutcome(match_key=m.group(2).lower(), outcome=outcome)
    return None


@dataclass
class EliminationMatch:
    key: str
    code: str
    seed1: str
    seed2: str
    stage: str
    player1: str = TBD
    player2: str = TBD
    id: str = ""

    @property
    def ref1(self) -> Optional[Reference]:
        return parse_reference(self.seed1)

    @property
    def ref2(self) -> Optional[Reference]:
        return parse_reference(self.seed2)

    @property
    def is_resolved(self) -> bool:
        """Both sides name real entrants (no seed tokens or outcome placeholders)."""
        return all(_is_concrete(p) for p in (self.player1, self.player2))

    def to_entry(self, category_id: Any, category_label: str) -> MatchEntry:
        return MatchEntry(
            id=self.id or f"elimgen-{category_id}-{self.key}",
            type=TYPE_ELIMINATION,
            category=category_label,
            category_id=str(category_id or ""),
            match_number=self.code,
            seed1=self.seed1,
            seed2=self.seed2,
            players_vs=f"{self.player1 or TBD} vs {self.player2 or TBD}",
            stage=self.stage,
        )


def _is_concrete(name: str) -> bool:
    text = str(name or "").strip()
    if not text or text.lower() == TBD.lower():
        return False
    return parse_reference(text) is None


# (key, code, seed1, seed2, stage)
Template = List[Tuple[str, str, str, str, str]]

_FINALS: Template = [
    ("bronze", "BRZ", "LSF1", "LSF2", STAGE_BRONZE),
    ("final", "FINAL", "WSF1", "WSF2", STAGE_GOLD),
]

TEMPLATES: Dict[int, Template] = {
    1: [
        ("final", "FINAL", "A1", "A2", STAGE_GOLD),
        ("bronze", "BRZ", "A3", "A4", STAGE_BRONZE),
    ],
    2: [
        ("sf1", "SF1", "A1", "B2", STAGE_SF),
        ("sf2", "SF2", "B1", "A2", STAGE_SF),
    ]
    + _FINALS,
    4: [
        ("qf1", "QF1", "A1", "D2", STAGE_QF),
        ("qf2", "QF2", "B1", "C2", STAGE_QF),
        ("qf3", "QF3", "C1", "B2", STAGE_QF),
        ("qf4", "QF4", "D1", "A2", STAGE_QF),
        ("sf1", "SF1", "WQF1", "WQF2", STAGE_SF),
        ("sf2", "SF2", "WQF3", "WQF4", STAGE_SF),
    ]
    + _FINALS,
    8: [
        ("r16-1", "R16-1", "A1", "H2", STAGE_R16),
        ("r16-2", "R16-2", "B1", "G2", STAGE_R16),
        ("r16-3", "R16-3", "C1", "F2", STAGE_R16),
        ("r16-4", "R16-4", "D1", "E2", STAGE_R16),
        ("r16-5", "R16-5", "E1", "D2", STAGE_R16),
        ("r16-6", "R16-6", "F1", "C2", STAGE_R16),
        ("r16-7", "R16-7", "G1", "B2", STAGE_R16),
        ("r16-8", "R16-8", "H1", "A2", STAGE_R16),
        ("qf1", "QF1", "WR16-1", "WR16-2", STAGE_QF),
        ("qf2", "QF2", "WR16-3", "WR16-4", STAGE_QF),
        ("qf3", "QF3", "WR16-5", "WR16-6", STAGE_QF),
        ("qf4", "QF4", "WR16-7", "WR16-8", STAGE_QF),
        ("sf1", "SF1", "WQF1", "WQF2", STAGE_SF),
        ("sf2", "SF2", "WQF3", "WQF4", STAGE_SF),
    ]
    + _FINALS,
}


Results = Mapping[str, Mapping[str, Any]]


def _recorded_outcomes(match: EliminationMatch, result: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """Winner/loser names for a finished match; a lone winner implies the other side lost."""
    if not result:
        return {}
    winner = str(result.get(OUTCOME_WINNER) or "").strip()
    loser = str(result.get(OUTCOME_LOSER) or "").strip()
    if winner and not loser:
        if winner == match.player1:
            loser = match.player2
        elif winner == match.player2:
            loser = match.player1
    outcomes: Dict[str, str] = {}
    if winner:
        outcomes[OUTCOME_WINNER] = winner
    if loser:
        outcomes[OUTCOME_LOSER] = loser
    return outcomes


def resolve_side(
    seed: str,
    ranked: Mapping[str, Sequence[str]],
    outcomes: Mapping[str, Mapping[str, str]],
    fallback: str = "",
) -> str:
    ref = parse_reference(seed)
    if isinstance(ref, DirectSeed):
        return pick_seed(ranked, ref.letter, ref.index)
    if isinstance(ref, MatchOutcome):
        return (outcomes.get(ref.match_key) or {}).get(ref.outcome) or ref.placeholder
    return fallback or seed or TBD


def resolve_bracket(
    matches: Sequence[EliminationMatch],
    ranked: Mapping[str, Sequence[str]],
    results: Optional[Results] = None,
) -> List[EliminationMatch]:
    """
    Single forward pass over matches in template order.

    Direct seeds resolve from the ranked lists. Outcome references resolve
    only from results recorded for earlier matches; otherwise they keep
    their "Winner X" / "Loser X" placeholder text.
    """
    results = results or {}
    outcomes: Dict[str, Dict[str, str]] = {}
    for match in matches:
        match.player1 = resolve_side(match.seed1, ranked, outcomes, match.player1)
        match.player2 = resolve_side(match.seed2, ranked, outcomes, match.player2)
        recorded = _recorded_outcomes(match, results.get(match.key))
        if recorded:
            outcomes[match.key] = recorded
    return list(matches)


def generate_elimination(
    bracket_size: Any,
    ranked: Mapping[str, Sequence[str]],
    results: Optional[Results] = None,
) -> List[EliminationMatch]:
    """
    Elimination matches for a bracket size.

    Nothing is generated for an unsupported size or when no group exists.
    """
    try:
        size = int(bracket_size)
    except (TypeError, ValueError):
        return []
    if size not in VALID_BRACKET_SIZES or not ranked:
        return []

    matches = [
        EliminationMatch(key=key, code=code, seed1=s1, seed2=s2, stage=stage)
        for key, code, s1, s2, stage in TEMPLATES[size]
    ]
    resolve_bracket(matches, ranked, results)
    logger.info("Generated %d elimination matches for bracket size %d", len(matches), size)
    return matches


def stage_label(round_or_title: Any) -> str:
    r = str(round_or_title or "").lower()
    if "bronze" in r:
        return STAGE_BRONZE
    if "quarter" in r:
        return STAGE_QF
    if "semi" in r:
        return STAGE_SF
    if "round of 16" in r or "r16" in r:
        return STAGE_R16
    if "battle for gold" in r:
        return STAGE_GOLD
    if r.strip() == "final" or r.startswith("final:"):
        return STAGE_GOLD
    return str(round_or_title or STAGE_DEFAULT).strip()


def code_from_round(round_or_title: Any) -> str:
    s = str(round_or_title or "").strip()
    lower = s.lower()
    m = re.search(r"(\d+)", s)
    n = m.group(1) if m else ""
    if "quarter" in lower:
        return f"QF{n}" if n else "QF"
    if "semi" in lower:
        return f"SF{n}" if n else "SF"
    if "bronze" in lower:
        return "BRZ"
    if "final" in lower:
        return "FINAL"
    return s.upper()


def seeds_from_text(text: Any) -> Tuple[str, str]:
    """
    Seed pair from stored round text.

    Recognizes "A1 vs B2" anywhere in the text, then "<title>: X vs Y".
    """
    t = str(text or "")
    m = re.search(r"([A-Z]\d+)\s*vs\s*([A-Z]\d+)", t, re.IGNORECASE)
    if m:
        return m.group(1).upper(), m.group(2).upper()
    m = re.search(r":\s*([^:]+?)\s+vs\s+(.+)\s*$", t, re.IGNORECASE)
    if m:
        return m.group(1).strip(), m.group(2).strip()
    return "", ""


def normalize_stored_matches(
    stored: Sequence[Mapping[str, Any]],
    category_id: Any,
    ranked: Mapping[str, Sequence[str]],
    directory: Optional[Mapping[str, str]] = None,
) -> List[EliminationMatch]:
    """
    Normalize previously stored elimination matches.

    Seeds come from the round, then the matchId, then the title. Sides
    stored as TBD are filled from their seed when it is a group seed.
    """
    normalized: List[EliminationMatch] = []
    for idx, match in enumerate(stored):
        round_text = str(match.get("round") or match.get("title") or "").strip()
        seed1, seed2 = "", ""
        for source in (round_text, match.get("matchId"), match.get("title")):
            seed1, seed2 = seeds_from_text(source)
            if seed1:
                break

        p1 = player_text(match.get("player1Name") or match.get("player1") or TBD, directory)
        p2 = player_text(match.get("player2Name") or match.get("player2") or TBD, directory)
        if p1.lower() == TBD.lower() and isinstance(parse_reference(seed1), DirectSeed):
            p1 = resolve_side(seed1, ranked, {})
        if p2.lower() == TBD.lower() and isinstance(parse_reference(seed2), DirectSeed):
            p2 = resolve_side(seed2, ranked, {})

        code = str(match.get("matchId") or code_from_round(round_text) or match.get("id") or f"E{idx + 1}")
        stored_id = match.get("id") or match.get("_id") or idx
        normalized.append(
            EliminationMatch(
                key=str(match.get("id") or match.get("_id") or code.lower()),
                code=code,
                seed1=seed1,
                seed2=seed2,
                stage=stage_label(round_text),
                player1=p1,
                player2=p2,
                id=f"elim-{category_id}-{stored_id}",
            )
        )
    return normalized
