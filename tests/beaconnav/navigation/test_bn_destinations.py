"""
Unit tests for destination name matching.

Tests cover:
- Exact, prefix, substring and whitespace-insensitive tiers
- Ambiguity whenever the winning tier holds several candidates, capped at three
- Case and diacritic folding
- NotFound for empty and unmatched queries

Run with: pytest tests/beaconnav/navigation/test_bn_destinations.py -v
"""

import unittest

from beaconnav.floorplan import Beacon
from beaconnav.navigation import (
    MatchAmbiguous,
    MatchNotFound,
    MatchSuccess,
    available_destinations,
    normalize_name,
    resolve_destination,
)
from beaconnav.sim import demo_floorplan


def _beacons(*names):
    return [Beacon(f"b{i}", name, (float(i), 0.0, 0.0)) for i, name in enumerate(names)]


class TestResolveDestination(unittest.TestCase):
    """Test the matching cascade."""

    def setUp(self) -> None:
        self.beacons = available_destinations(demo_floorplan())

    def test_shared_prefix_is_ambiguous(self) -> None:
        """Test "conference room" matches both conference rooms equally."""
        result = resolve_destination("conference room", self.beacons)
        self.assertIsInstance(result, MatchAmbiguous)
        self.assertEqual(result.names, ["Conference Room A", "Conference Room B"])

    def test_exact_match(self) -> None:
        """Test an exact name succeeds."""
        result = resolve_destination("Conference Room A", self.beacons)
        self.assertIsInstance(result, MatchSuccess)
        self.assertEqual(result.name, "Conference Room A")
        self.assertEqual(result.beacon.id, "b-conf-a")

    def test_not_found(self) -> None:
        """Test an unknown name and an empty query."""
        self.assertIsInstance(resolve_destination("Supply Closet", self.beacons), MatchNotFound)
        self.assertEqual(resolve_destination("   ", self.beacons), MatchNotFound("   "))

    def test_case_and_diacritics(self) -> None:
        """Test case and accents are ignored."""
        result = resolve_destination("CAFE CORNER", self.beacons)
        self.assertIsInstance(result, MatchSuccess)
        self.assertEqual(result.name, "Café Corner")

    def test_prefix_and_substring(self) -> None:
        """Test unique prefix and substring matches succeed."""
        self.assertEqual(resolve_destination("coffee", self.beacons).name, "Coffee Machine")
        self.assertEqual(resolve_destination("fountain", self.beacons).name, "Water Fountain")

    def test_whitespace_insensitive_tier(self) -> None:
        """Test "conf room a" style queries fall back to space-free matching."""
        beacons = _beacons("Mail Room", "Storage")
        result = resolve_destination("mailroom", beacons)
        self.assertIsInstance(result, MatchSuccess)
        self.assertEqual(result.name, "Mail Room")

    def test_exact_beats_prefix(self) -> None:
        """Test an exact match wins over longer names sharing the prefix."""
        beacons = _beacons("Lab", "Lab Annex", "Lab Storage")
        result = resolve_destination("lab", beacons)
        self.assertIsInstance(result, MatchSuccess)
        self.assertEqual(result.name, "Lab")

    def test_length_orders_ambiguous_candidates(self) -> None:
        """Test several prefix matches are offered, closest length first."""
        beacons = _beacons("Printer Room East Wing", "Printer Room")
        result = resolve_destination("printer", beacons)
        self.assertIsInstance(result, MatchAmbiguous)
        self.assertEqual(result.names, ["Printer Room", "Printer Room East Wing"])

    def test_unequal_rank_in_tier_is_ambiguous(self) -> None:
        """Test a strictly better candidate is still not picked when its tier has others."""
        beacons = _beacons("Conference Room", "Conference Room Annex")
        result = resolve_destination("conference", beacons)
        self.assertIsInstance(result, MatchAmbiguous)
        self.assertEqual(result.names, ["Conference Room", "Conference Room Annex"])

    def test_ambiguous_capped_at_three(self) -> None:
        """Test at most three candidates are offered."""
        beacons = _beacons("Desk 1", "Desk 2", "Desk 3", "Desk 4")
        result = resolve_destination("desk", beacons)
        self.assertIsInstance(result, MatchAmbiguous)
        self.assertEqual(result.names, ["Desk 1", "Desk 2", "Desk 3"])


class TestHelpers(unittest.TestCase):
    """Test normalization and the destination list."""

    def test_normalize_name(self) -> None:
        """Test folding and whitespace collapse."""
        self.assertEqual(normalize_name("  Café\tCORNER  "), "cafe corner")

    def test_available_destinations_sorted(self) -> None:
        """Test obstacles are excluded and names sorted."""
        names = [b.name for b in available_destinations(demo_floorplan())]
        self.assertEqual(names, sorted(names, key=str.casefold))
        self.assertNotIn("Pillar", names)


if __name__ == "__main__":
    unittest.main()
