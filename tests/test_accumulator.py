"""Tests for TokenUsageAccumulator and NodeMetricsTracker."""

import random
from concurrent.futures import ThreadPoolExecutor

from nestrace.accumulator import NodeMetricsTracker, TokenUsageAccumulator
from nestrace.models.run import utcnow
from nestrace.protocols import TokenUsage


class TestTokenUsageAccumulator:
    def test_two_calls_sum(self):
        acc = TokenUsageAccumulator()
        acc.add(TokenUsage(input_tokens=10, output_tokens=5, total_tokens=15))
        acc.add(TokenUsage(input_tokens=7, output_tokens=3, total_tokens=10))
        assert acc.usage == TokenUsage(17, 8, 25)
        assert acc.calls == 2

    def test_order_does_not_matter(self):
        a, b = TokenUsage(10, 5, 15), TokenUsage(7, 3, 10)
        forward, backward = TokenUsageAccumulator(), TokenUsageAccumulator()
        forward.add(a)
        forward.add(b)
        backward.add(b)
        backward.add(a)
        assert forward.usage == backward.usage == TokenUsage(17, 8, 25)

    def test_concurrent_adds(self):
        acc = TokenUsageAccumulator()
        usages = [TokenUsage(10, 5, 15), TokenUsage(7, 3, 10)] * 500
        random.Random(7).shuffle(usages)
        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(acc.add, usages))
        assert acc.usage == TokenUsage(17 * 500, 8 * 500, 25 * 500)
        assert acc.calls == 1000

    def test_add_returns_running_total(self):
        acc = TokenUsageAccumulator()
        assert acc.add(TokenUsage(1, 1, 2)) == TokenUsage(1, 1, 2)
        assert acc.add(TokenUsage(2, 2, 4)) == TokenUsage(3, 3, 6)

    def test_by_model(self):
        acc = TokenUsageAccumulator()
        acc.add(TokenUsage(10, 5, 15), "gpt-4o")
        acc.add(TokenUsage(4, 2, 6), "gpt-4o")
        acc.add(TokenUsage(1, 1, 2), "claude")
        acc.add(TokenUsage(1, 1, 2))
        models = acc.by_model()
        assert models["gpt-4o"].usage == TokenUsage(14, 7, 21)
        assert models["gpt-4o"].calls == 2
        assert models["gpt-4o"].average_tokens_per_call == 10.5
        assert models["claude"].calls == 1
        assert acc.calls == 4

    def test_average_with_no_calls(self):
        assert TokenUsageAccumulator().average_tokens_per_call == 0.0


class TestNodeMetricsTracker:
    def test_attributes_usage_to_started_node(self):
        tracker = NodeMetricsTracker()
        tracker.start("r1", "planner", utcnow())
        assert tracker.add_usage("r1", TokenUsage(3, 2, 5), "gpt-4o")
        assert tracker.add_usage("r1", TokenUsage(1, 1, 2), "gpt-4o")
        tracker.add_tool_calls("r1", 2)
        tracker.finish("r1", 120.0)
        (metrics,) = tracker.snapshot()
        assert metrics.name == "planner"
        assert metrics.usage == TokenUsage(4, 3, 7)
        assert metrics.llm_calls == 2
        assert metrics.tokens_by_model == {"gpt-4o": TokenUsage(4, 3, 7)}
        assert metrics.tool_calls == 2
        assert metrics.duration_ms == 120.0

    def test_untracked_node_ignored(self):
        tracker = NodeMetricsTracker()
        assert tracker.add_usage("ghost", TokenUsage(1, 1, 2), None) is False
        tracker.add_tool_calls("ghost", 1)
        tracker.finish("ghost", 1.0)
        assert tracker.snapshot() == []
        assert not tracker.tracks("ghost")

    def test_snapshot_is_detached(self):
        tracker = NodeMetricsTracker()
        tracker.start("r1", "planner", utcnow())
        tracker.add_usage("r1", TokenUsage(1, 1, 2), "m")
        snap = tracker.snapshot()[0]
        tracker.add_usage("r1", TokenUsage(1, 1, 2), "m")
        assert snap.tokens_by_model == {"m": TokenUsage(1, 1, 2)}
