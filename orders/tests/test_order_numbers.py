from __future__ import annotations

from django.test import SimpleTestCase

from orders.order_numbers import (
    ALPHABET,
    generate_order_number,
    generate_unique_order_number,
    is_valid_order_number,
)


class OrderNumberTests(SimpleTestCase):
    def test_default_format(self):
        number = generate_order_number()
        prefix, first, second = number.split("-")
        self.assertEqual(prefix, "ORD")
        self.assertEqual(len(first), 5)
        self.assertEqual(len(second), 5)
        self.assertTrue(all(ch in ALPHABET for ch in first + second))
        self.assertTrue(is_valid_order_number(number))

    def test_ambiguous_characters_are_excluded(self):
        for ch in "01IO":
            self.assertNotIn(ch, ALPHABET)

    def test_unique_skips_taken_numbers(self):
        seen = []

        def exists(candidate):
            seen.append(candidate)
            return len(seen) < 3

        number = generate_unique_order_number(exists=exists)
        self.assertEqual(number, seen[-1])
        self.assertEqual(len(seen), 3)

    def test_unique_gives_up(self):
        with self.assertRaises(RuntimeError):
            generate_unique_order_number(exists=lambda _n: True, max_tries=3)

    def test_rejects_foreign_values(self):
        self.assertFalse(is_valid_order_number("INV-ABCDE-FGHJK"))
        self.assertFalse(is_valid_order_number("ORD-ABC0E"))
        self.assertFalse(is_valid_order_number(""))
