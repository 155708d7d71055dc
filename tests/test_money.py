# tests/test_money.py

"""Tests for vendor price parsing into minor units."""

import unittest

from cardprice.normalize.money import MAX_MINOR_UNITS, to_minor_units


class TestToMinorUnits(unittest.TestCase):
    """to_minor_units behaviour."""

    def test_plain_decimal_string(self) -> None:
        """A dollar string is converted to cents."""
        self.assertEqual(to_minor_units("12.34"), 1234)

    def test_strips_currency_formatting(self) -> None:
        """Currency symbols and thousands separators are ignored."""
        self.assertEqual(to_minor_units("$1,234.56"), 123456)

    def test_whole_number(self) -> None:
        """Integers without a fraction still become cents."""
        self.assertEqual(to_minor_units("7"), 700)

    def test_numeric_inputs(self) -> None:
        """Numbers from JSON documents are accepted as-is."""
        self.assertEqual(to_minor_units(12.34), 1234)
        self.assertEqual(to_minor_units(5), 500)

    def test_rounds_half_up(self) -> None:
        """Sub-cent values round to the nearest cent, half up."""
        self.assertEqual(to_minor_units("0.125"), 13)
        self.assertEqual(to_minor_units("0.124"), 12)

    def test_leading_dot(self) -> None:
        """A bare fraction like '.50' is a valid price."""
        self.assertEqual(to_minor_units(".50"), 50)

    def test_absent_values(self) -> None:
        """Missing, blank and non-numeric values are absent, not zero."""
        for value in (None, "", "   ", "N/A", "abc", "1.2.3", "-", "."):
            with self.subTest(value=value):
                self.assertIsNone(to_minor_units(value))

    def test_non_positive_values_dropped(self) -> None:
        """Zero and negative prices never produce a value."""
        for value in ("0", "0.00", "-1.00", -3, 0, "0.004"):
            with self.subTest(value=value):
                self.assertIsNone(to_minor_units(value))

    def test_out_of_range_values_dropped(self) -> None:
        """Amounts that overflow a 64-bit integer are treated as absent."""
        self.assertIsNone(to_minor_units("99999999999999999999"))
        self.assertIsNone(to_minor_units(str(MAX_MINOR_UNITS)))
        self.assertEqual(
            to_minor_units("92233720368547758.07"), MAX_MINOR_UNITS,
        )

    def test_bool_is_not_a_price(self) -> None:
        """JSON booleans are not treated as 1/0."""
        self.assertIsNone(to_minor_units(True))
        self.assertIsNone(to_minor_units(False))


if __name__ == "__main__":
    unittest.main()
