"""Tests for stable trans-unit identifiers."""

from __future__ import annotations

import pytest

from xlfsync.xliff_id import XliffIdToken, get_xliff_id, get_xliff_id_with_names, name_hash, parse_xliff_id


class TestNameHash:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("Caption", 532412421),
            ("OptionCaption", 3653972950),
            ("Test Table", 1798064241),
            ("Name", 266367750),
            ("", 2166136261),
            ("Ä", 1091250323),
        ],
    )
    def test_known_values(self, name: str, expected: int):
        assert name_hash(name) == expected

    def test_case_sensitive(self):
        assert name_hash("Name") != name_hash("name")


class TestIdentifier:
    def test_id_and_note(self):
        tokens = [
            XliffIdToken("Table", "Test Table"),
            XliffIdToken("Field", "Name"),
            XliffIdToken("Property", "Caption"),
        ]
        assert get_xliff_id(tokens) == "Table 1798064241 - Field 266367750 - Property 532412421"
        assert get_xliff_id_with_names(tokens) == "Table Test Table - Field Name - Property Caption"

    def test_parse_with_note_restores_names(self):
        tokens = parse_xliff_id(
            "Table 1798064241 - Field 266367750 - Property 532412421",
            "Table Test Table - Field Name - Property Caption",
        )
        assert [(t.type, t.name, t.number) for t in tokens] == [
            ("Table", "Test Table", 1798064241),
            ("Field", "Name", 266367750),
            ("Property", "Caption", 532412421),
        ]

    def test_parse_without_note_matches_by_hash(self):
        tokens = parse_xliff_id("Table 1798064241 - Property 3653972950")
        assert tokens[-1].name == ""
        assert tokens[-1].matches("Property", "OptionCaption")
        assert not tokens[-1].matches("Property", "Caption")

    def test_parse_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_xliff_id("Table - Property 1")
