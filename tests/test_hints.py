"""Tests for netcheck.hints -- the observable connection hint source."""

import unittest

from netcheck.hints import NO_HINT, ConnectionHint, StaticHintSource


class TestStaticHintSource(unittest.TestCase):
    def test_default_is_no_hint(self):
        self.assertEqual(StaticHintSource().current(), NO_HINT)

    def test_update_notifies_subscribers(self):
        source = StaticHintSource()
        seen = []
        source.subscribe(seen.append)
        source.update(downlink_mbps=12.5, effective_type="4g")
        self.assertEqual(seen, [ConnectionHint(effective_type="4g", downlink_mbps=12.5)])
        self.assertEqual(source.current().downlink_mbps, 12.5)

    def test_unchanged_update_is_silent(self):
        source = StaticHintSource(ConnectionHint(rtt_ms=40.0))
        seen = []
        source.subscribe(seen.append)
        source.update(rtt_ms=40.0)
        self.assertEqual(seen, [])

    def test_subscribe_twice_registers_once(self):
        source = StaticHintSource()
        seen = []
        source.subscribe(seen.append)
        source.subscribe(seen.append)
        self.assertEqual(source.subscriber_count, 1)
        source.update(rtt_ms=10.0)
        self.assertEqual(len(seen), 1)

    def test_unsubscribe(self):
        source = StaticHintSource()
        seen = []
        source.subscribe(seen.append)
        source.unsubscribe(seen.append)
        source.unsubscribe(seen.append)  # unknown callbacks are ignored
        source.update(rtt_ms=10.0)
        self.assertEqual(seen, [])
        self.assertEqual(source.subscriber_count, 0)

    def test_unknown_field(self):
        with self.assertRaises(TypeError):
            StaticHintSource().update(bogus=1)

    def test_to_dict(self):
        self.assertEqual(
            ConnectionHint("3g", 1.5, 300.0).to_dict(),
            {"effective_type": "3g", "downlink_mbps": 1.5, "rtt_ms": 300.0},
        )


if __name__ == "__main__":
    unittest.main()
