"""Tests for location validity and correction."""

from __future__ import annotations

from beatweaver.continuity import correct_locations, is_valid_location
from beatweaver.continuity.locations import find_best_location, match_score
from beatweaver.models import Location
from tests.fixtures.scripted_generation import make_beat

APPROVED = [
    Location(name="Old Mill"),
    Location(name="Village Square"),
    Location(name="Harbor Docks"),
]
NAMES = [loc.name for loc in APPROVED]


class TestIsValidLocation:
    """Tests for equality and containment matching."""

    def test_exact_and_case_insensitive(self) -> None:
        assert is_valid_location("Old Mill", NAMES)
        assert is_valid_location("old mill", NAMES)

    def test_containment_both_ways(self) -> None:
        """A location inside an approved name, or containing one, is valid."""
        assert is_valid_location("Behind the Old Mill", NAMES)
        assert is_valid_location("Harbor", NAMES)

    def test_unrelated_is_invalid(self) -> None:
        assert not is_valid_location("Castle Keep", NAMES)
        assert not is_valid_location("", NAMES)


class TestCorrection:
    """Tests for correct_locations."""

    def test_best_token_match_chosen(self) -> None:
        assert match_score("the docks at dawn", "Harbor Docks") == 1
        assert find_best_location("Fishing Docks", APPROVED) == "Harbor Docks"

    def test_falls_back_to_first_location(self) -> None:
        assert find_best_location("Castle Keep", APPROVED) == "Old Mill"

    def test_corrected_beats_are_flagged(self) -> None:
        """Invalid locations are rewritten and the original kept."""
        beats = [make_beat(1, location="Fishing Docks"), make_beat(2, location="Old Mill")]

        corrected = correct_locations(beats, APPROVED)

        assert corrected[0].location == "Harbor Docks"
        assert corrected[0].location_corrected is True
        assert corrected[0].original_location == "Fishing Docks"
        assert corrected[1] == beats[1]

    def test_every_location_valid_after_correction(self) -> None:
        beats = [
            make_beat(n, location=loc)
            for n, loc in enumerate(["Castle", "Mill Pond", "Crypt", "Square"], start=1)
        ]
        corrected = correct_locations(beats, APPROVED)
        assert all(is_valid_location(b.location, NAMES) for b in corrected)

    def test_correction_is_idempotent(self) -> None:
        beats = [make_beat(1, location="Castle"), make_beat(2, location="Docks of Doom")]
        once = correct_locations(beats, APPROVED)
        assert correct_locations(once, APPROVED) == once

    def test_no_approved_locations_passes_through(self) -> None:
        beats = [make_beat(1, location="Anywhere")]
        assert correct_locations(beats, []) == beats

    def test_empty_location_untouched(self) -> None:
        beats = [make_beat(1, location="")]
        assert correct_locations(beats, APPROVED)[0].location == ""
