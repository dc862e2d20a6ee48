import unittest
from datetime import datetime, timezone

from drivepicker.util.time import parse_timestamp, sort_timestamp


class TestUtilTime(unittest.TestCase):
    def test_parse_timestamp_z(self) -> None:
        dt = parse_timestamp("2025-01-01T12:34:56Z")
        self.assertEqual(dt, datetime(2025, 1, 1, 12, 34, 56, tzinfo=timezone.utc))

    def test_parse_timestamp_offset_converts_to_utc(self) -> None:
        dt = parse_timestamp("2025-01-01T12:34:56+09:00")
        self.assertIsNotNone(dt)
        self.assertEqual(dt.tzinfo, timezone.utc)  # type: ignore[union-attr]
        # 12:34:56 JST == 03:34:56 UTC
        self.assertEqual(dt, datetime(2025, 1, 1, 3, 34, 56, tzinfo=timezone.utc))

    def test_parse_timestamp_naive_is_utc(self) -> None:
        dt = parse_timestamp("2025-01-01 08:00:00")
        self.assertEqual(dt, datetime(2025, 1, 1, 8, 0, 0, tzinfo=timezone.utc))

    def test_parse_timestamp_garbage_is_none(self) -> None:
        self.assertIsNone(parse_timestamp("yesterday"))
        self.assertIsNone(parse_timestamp(""))
        self.assertIsNone(parse_timestamp(None))
        self.assertIsNone(parse_timestamp(12345))

    def test_sort_timestamp_orders_and_defaults(self) -> None:
        early = datetime(2024, 1, 1, tzinfo=timezone.utc)
        late = datetime(2025, 1, 1, tzinfo=timezone.utc)
        self.assertLess(sort_timestamp(early), sort_timestamp(late))
        self.assertEqual(sort_timestamp(None), 0.0)

    def test_sort_timestamp_naive_is_utc(self) -> None:
        naive = datetime(2025, 1, 1, 8, 0, 0)
        aware = datetime(2025, 1, 1, 8, 0, 0, tzinfo=timezone.utc)
        self.assertEqual(sort_timestamp(naive), sort_timestamp(aware))


if __name__ == "__main__":
    unittest.main()
