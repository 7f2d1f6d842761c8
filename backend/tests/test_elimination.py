"""
Tests for knockout generation, outcome propagation and stored-match normalization.
"""

import pytest

from tourney.services.elimination import (
    DirectSeed,
    MatchOutcome,
    code_from_round,
    generate_elimination,
    normalize_stored_matches,
    parse_reference,
    stage_label,
)

RANKED = {
    "A": ["Ann", "Abe", "Amy", "Al"],
    "B": ["Bea", "Bob"],
    "C": ["Cal", "Cat"],
    "D": ["Dee", "Dan"],
}


def _by_key(matches):
    return {m.key: m for m in matches}


class TestReferences:
    def test_direct_seed(self):
        assert parse_reference("a1") == DirectSeed(letter="A", index=1)

    def test_outcome_tokens(self):
        ref = parse_reference("WQF1")
        assert ref == MatchOutcome(match_key="qf1", outcome="winner")
        assert ref.token == "WQF1"
        assert ref.placeholder == "Winner QF1"
        assert parse_reference("LSF2").placeholder == "Loser SF2"
        assert parse_reference("WR16-3").match_key == "r16-3"

    def test_placeholder_text_parses(self):
        assert parse_reference("Winner QF1") == parse_reference("WQF1")

    def test_not_a_reference(self):
        assert parse_reference("Ann") is None
        assert parse_reference("") is None


class TestGenerate:
    @pytest.mark.parametrize("size,count", [(1, 2), (2, 4), (4, 8), (8, 16)])
    def test_match_counts(self, size, count):
        assert len(generate_elimination(size, RANKED)) == count

    @pytest.mark.parametrize("size", [0, 3, 16, None, "x"])
    def test_unsupported_size(self, size):
        assert generate_elimination(size, RANKED) == []

    def test_no_groups(self):
        assert generate_elimination(4, {}) == []

    def test_quarter_final_seeding(self):
        matches = _by_key(generate_elimination(4, RANKED))
        assert (matches["qf1"].seed1, matches["qf1"].seed2) == ("A1", "D2")
        assert (matches["qf1"].player1, matches["qf1"].player2) == ("Ann", "Dan")
        assert (matches["qf4"].player1, matches["qf4"].player2) == ("Dee", "Abe")
        assert matches["qf1"].stage == "Quarter-Final"

    def test_later_rounds_show_placeholders(self):
        matches = _by_key(generate_elimination(4, RANKED))
        assert matches["sf1"].player1 == "Winner QF1"
        assert matches["final"].player1 == "Winner SF1"
        assert matches["bronze"].player2 == "Loser SF2"
        assert not matches["final"].is_resolved
        assert matches["qf1"].is_resolved

    def test_single_group_bracket(self):
        matches = _by_key(generate_elimination(1, {"A": ["Ann", "Abe"]}))
        assert (matches["final"].player1, matches["final"].player2) == ("Ann", "Abe")
        # missing seeds keep their token
        assert (matches["bronze"].player1, matches["bronze"].player2) == ("A3", "A4")
        assert matches["bronze"].stage == "Battle for Bronze"

    def test_results_propagate(self):
        results = {
            "qf1": {"winner": "Ann"},
            "qf2": {"winner": "Cat", "loser": "Bea"},
            "sf1": {"winner": "Cat"},
        }
        matches = _by_key(generate_elimination(4, RANKED, results))
        assert (matches["sf1"].player1, matches["sf1"].player2) == ("Ann", "Cat")
        assert matches["final"].player1 == "Cat"
        # a lone winner implies the other side lost
        assert matches["bronze"].player1 == "Ann"
        assert matches["final"].player2 == "Winner SF2"

    def test_entry_ids(self):
        entry = generate_elimination(2, RANKED)[0].to_entry(9, "Open Singles")
        assert entry.id == "elimgen-9-sf1"
        assert entry.match_number == "SF1"
        assert entry.players_vs == "Ann vs Bob"
        assert entry.seed_vs == "A1 vs B2"


class TestStoredMatches:
    def test_tbd_side_filled_from_group_seed(self):
        stored = [{"id": "m1", "round": "Quarterfinal 1: A1 vs D2", "player1": "TBD", "player2": "Zed"}]
        match = normalize_stored_matches(stored, 5, RANKED)[0]
        assert (match.seed1, match.seed2) == ("A1", "D2")
        assert (match.player1, match.player2) == ("Ann", "Zed")
        assert match.code == "QF1"
        assert match.stage == "Quarter-Final"
        assert match.id == "elim-5-m1"

    def test_outcome_seeds_from_title(self):
        match = normalize_stored_matches([{"title": "Final: WSF1 vs WSF2"}], 5, RANKED)[0]
        assert (match.seed1, match.seed2) == ("WSF1", "WSF2")
        assert (match.player1, match.player2) == ("TBD", "TBD")
        assert match.stage == "Battle for Gold"
        assert match.code == "FINAL"
        assert match.id == "elim-5-0"

    def test_stored_names_kept(self):
        stored = [{"_id": "x", "matchId": "SF2", "player1Name": "Amy", "player2Name": "Bob"}]
        match = normalize_stored_matches(stored, 5, RANKED)[0]
        assert match.code == "SF2"
        assert (match.player1, match.player2) == ("Amy", "Bob")
        assert match.id == "elim-5-x"

    def test_code_falls_back_to_position(self):
        match = normalize_stored_matches([{}, {}], 5, RANKED)[1]
        assert match.code == "E2"
        assert match.stage == "Elimination"


class TestLabels:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Quarterfinal 2", "Quarter-Final"),
            ("Semi-final", "Semi-Final"),
            ("Round of 16 #3", "Round of 16"),
            ("Battle for Bronze", "Battle for Bronze"),
            ("Final", "Battle for Gold"),
            ("Final: WSF1 vs WSF2", "Battle for Gold"),
            ("Playoff", "Playoff"),
            (None, "Elimination"),
        ],
    )
    def test_stage_label(self, text, expected):
        assert stage_label(text) == expected

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Quarterfinal 3", "QF3"),
            ("Semifinal", "SF"),
            ("Bronze medal", "BRZ"),
            ("Grand Final", "FINAL"),
            ("playoff", "PLAYOFF"),
            ("", ""),
        ],
    )
    def test_code_from_round(self, text, expected):
        assert code_from_round(text) == expected
