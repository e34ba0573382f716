"""Tests for netcheck.orchestrator -- phase sequencing, progress and results."""

import asyncio
import unittest

from netcheck.config import TestConfig
from netcheck.constants import DEFAULT_LATENCY_URL
from netcheck.hints import ConnectionHint, StaticHintSource
from netcheck.latency import summarize_samples
from netcheck.orchestrator import (
    RunPhase,
    TestOrchestrator,
    latency_target,
    server_host,
    simulate_ramp,
    simulated_baseline,
)
from netcheck.provider import ProviderInfo
from netcheck.throughput import ProbeResult


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeSampler:
    def __init__(self, samples=(20.0, 22.0, 18.0, 25.0, 21.0), delay=0.0):
        self.samples = list(samples)
        self.delay = delay
        self.calls = []

    async def measure(self, url, count=5):
        self.calls.append((url, count))
        if self.delay:
            await asyncio.sleep(self.delay)
        return summarize_samples(self.samples)


class FakeProbe:
    direction = "fake"

    def __init__(self, speeds):
        self.speeds = list(speeds)
        self.calls = []

    async def run(self, url, max_seconds, parallel_streams, warmup_seconds, bucket_width_ms, reducer):
        self.calls.append(
            dict(url=url, max_seconds=max_seconds, streams=parallel_streams,
                 warmup=warmup_seconds, bucket=bucket_width_ms, reducer=reducer)
        )
        await asyncio.sleep(0)
        speed = self.speeds[min(len(self.calls) - 1, len(self.speeds) - 1)]
        return ProbeResult(throughput_mbps=speed, elapsed_seconds=1.0, total_bytes=1, streams=parallel_streams)


class FakeLookup:
    def __init__(self, info, delay=0.0):
        self.info = info
        self.delay = delay
        self.calls = 0

    async def lookup(self):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.info


async def no_sleep(_seconds):
    await asyncio.sleep(0)


def make_config(**overrides):
    values = dict(
        target_download_url="https://speed.example.com/down",
        target_upload_url="https://speed.example.com/up",
        duration_seconds=3.0,
        parallel_streams=8,
        passes=2,
        warmup_seconds=1.0,
        bucket_width_ms=250,
        percentile_mode="p95",
    )
    values.update(overrides)
    return TestConfig(**values)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class TestServerHost(unittest.TestCase):
    def test_hostname(self):
        self.assertEqual(server_host("https://speed.example.com:8443/x?y=1"), "speed.example.com")

    def test_first_non_empty(self):
        self.assertEqual(server_host("", "http://up.example.org/"), "up.example.org")

    def test_local(self):
        self.assertEqual(server_host("http://localhost:8080/x"), "Local test server")
        self.assertEqual(server_host("http://127.0.0.1/x"), "Local test server")

    def test_malformed(self):
        self.assertIsNone(server_host("not a url"))
        self.assertIsNone(server_host("http://[::1/x"))
        self.assertIsNone(server_host("", None))


class TestLatencyTarget(unittest.TestCase):
    def test_explicit(self):
        cfg = make_config(latency_url="https://ping.example.com/p")
        self.assertEqual(latency_target(cfg), "https://ping.example.com/p")

    def test_origin_of_download(self):
        self.assertEqual(latency_target(make_config()), "https://speed.example.com/favicon.ico")

    def test_origin_of_upload(self):
        cfg = make_config(target_download_url="", target_upload_url="http://u.example.com:81/up")
        self.assertEqual(latency_target(cfg), "http://u.example.com:81/favicon.ico")

    def test_default(self):
        cfg = make_config(target_download_url="", target_upload_url="")
        self.assertEqual(latency_target(cfg), DEFAULT_LATENCY_URL)


class TestSimulatedRamp(unittest.IsolatedAsyncioTestCase):
    async def test_ramp_ends_at_175_percent(self):
        values = []
        final = await simulate_ramp(10.0, 1.0, on_value=values.append, sleep=no_sleep)
        self.assertEqual(final, 18)  # 17.5 rounds half up
        self.assertEqual(values[-1], final)
        self.assertEqual(len(values), 10)
        self.assertEqual(values, sorted(values))
        self.assertGreaterEqual(values[0], 5)

    async def test_ramp_shorter_than_a_tick_takes_one_step(self):
        values = []
        final = await simulate_ramp(10.0, 0.0, on_value=values.append, sleep=no_sleep)
        self.assertEqual(values, [18])
        self.assertEqual(final, 18)

    def test_baseline(self):
        self.assertEqual(simulated_baseline(0, 3.0), 10.0)
        self.assertAlmostEqual(simulated_baseline(4.0, 7.0), 8.0)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class TestOrchestratorRun(unittest.IsolatedAsyncioTestCase):
    def make(self, config=None, **kwargs):
        self.sampler = kwargs.pop("latency_sampler", FakeSampler())
        self.down = kwargs.pop("download_probe", FakeProbe([40.4, 55.6]))
        self.up = kwargs.pop("upload_probe", FakeProbe([12.2, 9.0]))
        self.completed = []
        self.progress = []
        return TestOrchestrator(
            config or make_config(),
            latency_sampler=self.sampler,
            download_probe=self.down,
            upload_probe=self.up,
            on_complete=self.completed.append,
            on_progress=lambda phase, pct: self.progress.append((phase, pct)),
            sleep=no_sleep,
            **kwargs,
        )

    async def test_full_run(self):
        orch = self.make()
        result = await orch.run()

        self.assertEqual(orch.state.phase, RunPhase.DONE)
        self.assertEqual(orch.state.progress, 100)
        self.assertEqual(
            self.progress,
            [(RunPhase.LATENCY, 25), (RunPhase.DOWNLOAD, 60),
             (RunPhase.UPLOAD, 90), (RunPhase.FINALIZE, 100)],
        )
        self.assertEqual(result.ping_ms, 21)
        self.assertEqual(result.download_mbps, 56)   # best of two passes
        self.assertEqual(result.upload_mbps, 12)
        self.assertTrue(result.download_measured)
        self.assertTrue(result.upload_measured)
        self.assertEqual(result.server_host, "speed.example.com")
        self.assertEqual(self.completed, [result])
        self.assertIs(self.completed[0], result)
        self.assertIs(orch.state.result, result)

    async def test_callback_sees_final_values(self):
        seen = {}

        def on_complete(result):
            seen["result"] = result
            seen["phase"] = orch.state.phase
            seen["download"] = orch.state.download_mbps

        orch = self.make()
        orch.on_complete = on_complete
        result = await orch.run()
        self.assertEqual(seen["phase"], RunPhase.DONE)
        self.assertEqual(seen["download"], result.download_mbps)
        self.assertEqual(seen["result"].download_mbps, 56)

    async def test_probe_arguments(self):
        orch = self.make(make_config(parallel_streams=7, percentile_mode="peak"))
        await orch.run()
        self.assertEqual(len(self.down.calls), 2)
        self.assertEqual(len(self.up.calls), 2)
        self.assertEqual(self.down.calls[0]["streams"], 7)
        self.assertEqual(self.up.calls[0]["streams"], 3)
        self.assertEqual(self.down.calls[0]["url"], "https://speed.example.com/down")
        self.assertEqual(self.down.calls[0]["warmup"], 1.0)
        self.assertEqual(self.down.calls[0]["bucket"], 250)
        self.assertEqual(self.down.calls[0]["reducer"].value, "peak")
        self.assertEqual(self.sampler.calls[0][0], "https://speed.example.com/favicon.ico")

    async def test_even_sample_count_uses_upper_middle(self):
        orch = self.make(latency_sampler=FakeSampler([40.0, 10.0, 30.0, 20.0]))
        result = await orch.run()
        self.assertEqual(result.ping_ms, 30)

    async def test_passes_minimum_one(self):
        orch = self.make(make_config(passes=0, parallel_streams=1))
        await orch.run()
        self.assertEqual(len(self.down.calls), 1)
        self.assertEqual(self.up.calls[0]["streams"], 1)

    async def test_second_start_is_ignored(self):
        orch = self.make(latency_sampler=FakeSampler(delay=0.01))
        first, second = await asyncio.gather(orch.run(), orch.run())
        self.assertIsNotNone(first)
        self.assertIsNone(second)
        self.assertEqual(len(self.completed), 1)
        self.assertEqual(len(self.sampler.calls), 1)

    async def test_can_run_again_after_done(self):
        orch = self.make()
        await orch.run()
        self.assertFalse(orch.running)
        await orch.run()
        self.assertEqual(len(self.completed), 2)

    async def test_no_urls_simulates(self):
        orch = self.make(make_config(target_download_url="", target_upload_url=""))
        result = await orch.run()
        self.assertEqual(orch.state.phase, RunPhase.DONE)
        self.assertFalse(result.download_measured)
        self.assertFalse(result.upload_measured)
        self.assertGreater(result.download_mbps, 0)
        self.assertGreater(result.upload_mbps, 0)
        self.assertLess(result.upload_mbps, result.download_mbps)
        self.assertEqual(self.down.calls, [])
        self.assertEqual(self.up.calls, [])
        self.assertIsNone(result.server_host)
        self.assertEqual(self.sampler.calls[0][0], DEFAULT_LATENCY_URL)
        self.assertEqual(len(self.completed), 1)

    async def test_failure_releases_state(self):
        class Broken:
            async def measure(self, url, count=5):
                raise RuntimeError("boom")

        orch = self.make(latency_sampler=Broken())
        with self.assertRaises(RuntimeError):
            await orch.run()
        self.assertEqual(orch.state.phase, RunPhase.IDLE)
        self.assertEqual(self.completed, [])


class TestOrchestratorQuality(unittest.IsolatedAsyncioTestCase):
    async def test_quality_from_hint_and_ping(self):
        hints = StaticHintSource(ConnectionHint(effective_type="4g", downlink_mbps=10.0, rtt_ms=50.0))
        orch = TestOrchestrator(
            make_config(),
            hint_source=hints,
            latency_sampler=FakeSampler([100.0]),
            download_probe=FakeProbe([1.0]),
            upload_probe=FakeProbe([1.0]),
            sleep=no_sleep,
        )
        # before a run: rtt hint 50 ms -> 30 points, 10 Mbps hint x10 -> 60 points
        self.assertEqual(orch.quality.score, 90)
        result = await orch.run()
        # measured 100 ms replaces the rtt hint -> 20 points
        self.assertEqual(result.quality_score, 80)
        self.assertEqual(result.quality, "Excellent")
        self.assertEqual(result.signal_bars, 4)
        self.assertEqual(result.effective_type, "4g")
        self.assertEqual(result.downlink_mbps, 10.0)
        self.assertEqual(result.rtt_ms, 50.0)

    async def test_hint_change_updates_quality_live(self):
        hints = StaticHintSource()
        orch = TestOrchestrator(make_config(), hint_source=hints)
        self.assertEqual(orch.quality.score, 40)
        hints.update(downlink_mbps=5.0)
        self.assertEqual(orch.quality.score, 70)
        orch.close()
        self.assertEqual(hints.subscriber_count, 0)
        hints.update(downlink_mbps=0.0)
        self.assertEqual(orch.quality.score, 70)

    async def test_without_hint_source(self):
        orch = TestOrchestrator(
            make_config(),
            latency_sampler=FakeSampler([30.0]),
            download_probe=FakeProbe([1.0]),
            upload_probe=FakeProbe([1.0]),
            sleep=no_sleep,
        )
        result = await orch.run()
        self.assertIsNone(result.effective_type)
        self.assertIsNone(result.downlink_mbps)
        # 30 ms -> 34 points, no bandwidth hint
        self.assertEqual(result.quality_score, 34)
        self.assertEqual(result.quality, "Poor")


class TestOrchestratorProvider(unittest.IsolatedAsyncioTestCase):
    def make(self, lookup):
        return TestOrchestrator(
            make_config(),
            provider_lookup=lookup,
            latency_sampler=FakeSampler(),
            download_probe=FakeProbe([1.0]),
            upload_probe=FakeProbe([1.0]),
            sleep=no_sleep,
        )

    async def test_merged_when_ready(self):
        lookup = FakeLookup(ProviderInfo(name="Example ISP", ip="203.0.113.7"))
        result = await self.make(lookup).run()
        self.assertEqual(result.provider, "Example ISP")
        self.assertEqual(result.ip, "203.0.113.7")

    async def test_absent_when_not_ready(self):
        lookup = FakeLookup(ProviderInfo(name="Slow ISP", ip="203.0.113.8"), delay=10.0)
        result = await self.make(lookup).run()
        self.assertIsNone(result.provider)
        self.assertIsNone(result.ip)

    async def test_cached_across_runs(self):
        lookup = FakeLookup(ProviderInfo(name="Example ISP", ip="203.0.113.7"))
        orch = self.make(lookup)
        await orch.run()
        result = await orch.run()
        self.assertEqual(lookup.calls, 1)
        self.assertEqual(result.provider, "Example ISP")

    async def test_failed_lookup_is_absent(self):
        class Failing:
            async def lookup(self):
                raise OSError("offline")

        result = await self.make(Failing()).run()
        self.assertIsNone(result.provider)


class TestResultRecord(unittest.IsolatedAsyncioTestCase):
    async def test_to_dict(self):
        orch = TestOrchestrator(
            make_config(),
            latency_sampler=FakeSampler(),
            download_probe=FakeProbe([10.0]),
            upload_probe=FakeProbe([5.0]),
            sleep=no_sleep,
        )
        d = (await orch.run()).to_dict()
        for key in ("download_mbps", "upload_mbps", "ping_ms", "quality", "quality_score",
                    "download_measured", "provider", "ip", "server_host", "timestamp"):
            self.assertIn(key, d)
        self.assertIn("T", d["timestamp"])


if __name__ == "__main__":
    unittest.main()
