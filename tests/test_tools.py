import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from errors import ValidationError
from tools import MathTools, NumberParser


class NumberParserTestCase(unittest.TestCase):
    def test_lenient_parse(self) -> None:
        self.assertEqual(NumberParser.parse_float(" 42.5 "), 42.5)
        self.assertEqual(NumberParser.parse_float(7), 7.0)
        self.assertIsNone(NumberParser.parse_float(None))
        self.assertIsNone(NumberParser.parse_float("   "))
        self.assertIsNone(NumberParser.parse_float("heavy"))
        self.assertIsNone(NumberParser.parse_float("nan"))
        self.assertIsNone(NumberParser.parse_float("inf"))
        self.assertIsNone(NumberParser.parse_float(True))
        self.assertIsNone(NumberParser.parse_float([5]))

    def test_integers_truncate(self) -> None:
        self.assertEqual(NumberParser.parse_int("5.9"), 5)
        self.assertEqual(NumberParser.parse_int(-2.7), -2)
        self.assertIsInstance(NumberParser.parse_int("3"), int)

    def test_minimum(self) -> None:
        self.assertIsNone(NumberParser.parse_int("0", minimum=1))
        self.assertEqual(NumberParser.parse_int("1", minimum=1), 1)
        with self.assertRaises(ValidationError) as ctx:
            NumberParser.parse_int(0, strict=True, minimum=1, field="week")
        self.assertIn("week", str(ctx.exception))

    def test_strict_rejects_garbage_but_allows_blank(self) -> None:
        with self.assertRaises(ValidationError):
            NumberParser.parse_float("abc", strict=True, field="weight")
        self.assertIsNone(NumberParser.parse_float("", strict=True))
        self.assertIsNone(NumberParser.parse_int(None, strict=True))


class MathToolsTestCase(unittest.TestCase):
    def test_volume(self) -> None:
        sets = [(5, 100.0), (5, 100.0), (3, None)]
        self.assertEqual(MathTools.volume(sets), 1000.0)
        self.assertEqual(MathTools.volume([]), 0.0)

    def test_legacy_volume(self) -> None:
        self.assertEqual(MathTools.legacy_volume(3, 5, 100), 1500.0)
        self.assertEqual(MathTools.legacy_volume(None, 5, 100), 0.0)

    def test_exercise_volume(self) -> None:
        self.assertEqual(MathTools.exercise_volume(1000, 3, 5, 100), 1000.0)
        self.assertEqual(MathTools.exercise_volume(0, 3, 5, 100), 0.0)
        self.assertEqual(MathTools.exercise_volume(None, 3, 5, 100), 1500.0)
        self.assertEqual(MathTools.exercise_volume(None, None, None, None), 0.0)

    def test_round_volume(self) -> None:
        self.assertEqual(MathTools.round_volume(0.1 * 3 + 0.2 * 3), 0.9)
        self.assertEqual(MathTools.round_volume(1234.5678), 1234.57)


if __name__ == "__main__":
    unittest.main()
