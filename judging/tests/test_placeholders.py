from __future__ import annotations

from django.test import SimpleTestCase

from judging.placeholders import (
    PlaceholderRef,
    display_placeholder,
    heat_key,
    make_placeholder,
    parse_placeholder,
)


class PlaceholderCodecTests(SimpleTestCase):
    def test_make_placeholder(self):
        self.assertEqual(make_placeholder(1, 1, 3), "R1-H1-P3")
        self.assertEqual(make_placeholder(2, 1, 1, prefix="RP"), "RP2-H1-P1")
        self.assertEqual(heat_key("RP", 1, 4), "RP1-H4")
        with self.assertRaises(ValueError):
            make_placeholder(1, 1, 1, prefix="Q")

    def test_parse_compact_forms(self):
        self.assertEqual(parse_placeholder("R1-H1-P3"), PlaceholderRef("R", 1, 1, 3))
        self.assertEqual(parse_placeholder("rp2-h1-p1"), PlaceholderRef("RP", 2, 1, 1))
        self.assertEqual(parse_placeholder("  R12-H10-P2 "), PlaceholderRef("R", 12, 10, 2))

    def test_parse_display_forms(self):
        self.assertEqual(parse_placeholder("QUALIFIÉ R1-H1 (P1)"), PlaceholderRef("R", 1, 1, 1))
        self.assertEqual(parse_placeholder("Repêchage R1-H1 (P3)"), PlaceholderRef("R", 1, 1, 3))
        self.assertEqual(parse_placeholder("R1-H2 P2"), PlaceholderRef("R", 1, 2, 2))
        self.assertEqual(parse_placeholder("Repêchage RP1 - H2 (P1)"), PlaceholderRef("RP", 1, 2, 1))

    def test_parse_rejects_junk(self):
        for value in ("", None, "BYE", "Seed 4", "R1-H1", "Heat 2 winner"):
            with self.subTest(value=value):
                self.assertIsNone(parse_placeholder(value))

    def test_display_placeholder(self):
        ref = parse_placeholder("R1-H1-P1")
        self.assertEqual(display_placeholder(ref), "QUALIFIÉ R1-H1 (P1)")
        self.assertEqual(display_placeholder("RP1-H2-P2"), "Repêchage RP1-H2 (P2)")
        self.assertEqual(display_placeholder("BYE"), "BYE")
        self.assertEqual(parse_placeholder(display_placeholder(ref, "FINALISTE")), ref)

    def test_ref_keys(self):
        ref = PlaceholderRef("RP", 3, 2, 1)
        self.assertTrue(ref.is_repechage)
        self.assertEqual(ref.key, "RP3-H2-P1")
        self.assertEqual(ref.heat_key, "RP3-H2")
        self.assertEqual(str(ref), "RP3-H2-P1")
