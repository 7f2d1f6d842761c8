"""
Tests for round-robin pair enumeration and slot-group numbering.
"""

from tourney.services.entrant_resolver import KIND_SINGLES, Entrant
from tourney.services.group_allocator import Group
from tourney.services.round_robin import (
    enumerate_group_matches,
    enumerate_pairs,
    number_pairs,
    pair_key,
    parse_pair_key,
    playable_players,
)


def _group(names, letter="A", matches=None) -> Group:
    return Group(
        letter=letter,
        entrants=[Entrant(id=f"x{i}", display_name=n, kind=KIND_SINGLES) for i, n in enumerate(names)],
        matches=matches or {},
    )


class TestPairKeys:
    def test_key_format(self):
        assert pair_key(0, 1) == "0-0"
        assert pair_key(0, 2) == "0-1"
        assert pair_key(2, 3) == "2-0"

    def test_parse_round_trip(self):
        for i, j, key in enumerate_pairs(6):
            assert parse_pair_key(key) == (i, j)

    def test_parse_garbage(self):
        assert parse_pair_key("abc") is None
        assert parse_pair_key("3") == (3, 4)

    def test_all_pairs_unique(self):
        for n in range(0, 9):
            pairs = enumerate_pairs(n)
            assert len(pairs) == n * (n - 1) // 2
            assert len({key for _, _, key in pairs}) == len(pairs)


class TestNumbering:
    def test_shared_slot_gets_suffixes(self):
        overlay = {
            "0-0": {"date": "2024-06-01", "time": "09:00"},
            "2-0": {"date": "2024-06-01", "time": "09:00"},
            "0-1": {"date": "2024-06-01", "time": "09:30"},
            "0-2": {"date": "2024-06-01", "time": "10:00"},
            "1-0": {"date": "2024-06-01", "time": "10:30"},
            "1-1": {"date": "2024-06-01", "time": "11:00"},
        }
        group = _group(["Ann", "Ben", "Cy", "Di"], matches=overlay)
        entries = enumerate_group_matches(group, 7, "Open Singles")

        assert [(e.match_key, e.display_number) for e in entries] == [
            ("0-0", "GA1.1"),
            ("2-0", "GA1.2"),
            ("0-1", "GA2"),
            ("0-2", "GA3"),
            ("1-0", "GA4"),
            ("1-1", "GA5"),
        ]
        assert entries[0].match_number == "G1.1"
        assert entries[0].players_vs == "Ann vs Ben"
        assert entries[1].players_vs == "Cy vs Di"
        assert entries[1].seed_vs == "A3 vs A4"

    def test_unscheduled_sort_first_on_default_date(self):
        overlay = {"0-0": {"date": "2024-06-01", "time": "09:00"}}
        numbered = number_pairs(enumerate_pairs(3), overlay, "2024-06-01")
        assert [p.key for p in numbered] == ["0-1", "1-0", "0-0"]
        assert [p.match_number() for p in numbered] == ["G1.1", "G1.2", "G2"]

    def test_ties_keep_enumeration_order(self):
        numbered = number_pairs(enumerate_pairs(4), {})
        assert [p.key for p in numbered] == [key for _, _, key in enumerate_pairs(4)]
        assert all(p.slot_size == 6 for p in numbered)


class TestGroupMatches:
    def test_entry_fields(self):
        entry = enumerate_group_matches(_group(["Ann", "Ben"], letter="B"), 3, "Mixed Doubles")[0]
        assert entry.id == "rr-3-group-b-0-0"
        assert entry.type == "group"
        assert entry.stage == "Round robin"
        assert entry.bracket == "B"
        assert entry.category == "Mixed Doubles"
        assert entry.category_id == "3"
        assert entry.display_number == "GB1"

    def test_placeholders_removed(self):
        assert playable_players(["Ann", "TBD", "", "Ben", "Unknown Player"]) == ["Ann", "Ben"]
        entries = enumerate_group_matches(_group(["Ann", "TBD", "Ben"]), 1, "Open")
        assert [e.players_vs for e in entries] == ["Ann vs Ben"]

    def test_overlay_keys_used_without_players(self):
        overlay = {"0-0": {"player1Name": "Ann", "player2Name": "Ben", "time": "09:00"}, "1-0": {}}
        entries = enumerate_group_matches(_group([], matches=overlay), 1, "Open")
        assert [e.match_key for e in entries] == ["1-0", "0-0"]
        assert entries[0].players_vs == "TBD vs TBD"
        assert entries[1].players_vs == "Ann vs Ben"

    def test_empty_group(self):
        assert enumerate_group_matches(_group([]), 1, "Open") == []
