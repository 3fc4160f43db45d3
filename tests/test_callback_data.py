import unittest
from decimal import Decimal

from interfaces.telegram.callback_data import encode_outcome, parse_outcome


class OutcomeCallbackDataTests(unittest.TestCase):
    def test_encode_format(self):
        self.assertEqual(encode_outcome(True, 2, Decimal("1.50")), "outcome:win:2:1.50")
        self.assertEqual(encode_outcome(False, 1, Decimal("3")), "outcome:lose:1:3")

    def test_parse(self):
        self.assertEqual(parse_outcome("outcome:lose:2:0.75"), (False, 2, Decimal("0.75")))

    def test_parse_rejects_malformed_data(self):
        malformed = (
            "outcome:draw:1:1",
            "outcome:win:x:1",
            "outcome:win:1:abc",
            "from:a:to:b:1",
            "outcome:win:1",
            "outcome:win:1:NaN",
            "outcome:lose:2:Infinity",
            "outcome:win:1:sNaN",
        )
        for data in malformed:
            with self.subTest(data=data):
                with self.assertRaises(ValueError):
                    parse_outcome(data)


if __name__ == "__main__":
    unittest.main()
