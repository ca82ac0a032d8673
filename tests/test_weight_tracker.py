"""
Test suite for the adaptive weight tracker.

Verifies weight bounds, rolling windows, deterministic updates and
atomic snapshot semantics under concurrent writers.

Run: pytest tests/test_weight_tracker.py -v
"""

import pytest
import threading

from confluex.signal_engine import AdaptiveWeightTracker, WeightTrackerConfig


@pytest.fixture
def tracker():
    return AdaptiveWeightTracker()


class TestWeightTracker:
    """Test weight adaptation"""

    def test_initial_weights_are_base(self, tracker):
        snapshot = tracker.snapshot()

        assert snapshot.version == 0
        assert snapshot.get('MACD') == 0.24
        assert snapshot.get('VOLUME') == 0.02
        assert len(snapshot.weights) == 10

    def test_no_adaptation_below_min_samples(self, tracker):
        """Fewer than 10 outcomes leave the base weight in place"""
        for _ in range(9):
            tracker.record_outcome('MACD', True)

        assert tracker.get_weight('MACD') == 0.24

    def test_perfect_record_raises_weight(self, tracker):
        """weight = base + 0.2 * (win_rate - 0.5)"""
        for _ in range(10):
            tracker.record_outcome('MACD', True)

        assert tracker.get_weight('MACD') == pytest.approx(0.34)

    def test_half_record_keeps_base(self, tracker):
        for i in range(20):
            tracker.record_outcome('RSI', i % 2 == 0)

        assert tracker.get_weight('RSI') == pytest.approx(0.16)

    def test_floor(self, tracker):
        """Weights never drop below the floor"""
        for _ in range(10):
            tracker.record_outcome('VOLUME', False)

        assert tracker.get_weight('VOLUME') == 0.01

    def test_ceiling(self):
        config = WeightTrackerConfig(base_weights={'MACD': 0.45})
        tracker = AdaptiveWeightTracker(config)
        for _ in range(10):
            tracker.record_outcome('MACD', True)

        assert tracker.get_weight('MACD') == 0.5

    def test_rolling_window(self, tracker):
        """Only the last 50 outcomes count"""
        for _ in range(50):
            tracker.record_outcome('ADX', False)
        for _ in range(50):
            tracker.record_outcome('ADX', True)

        stats = tracker.get_performance_stats()['ADX']
        assert stats['sample_count'] == 50
        assert stats['win_rate'] == 1.0
        assert stats['losses'] == 0

    def test_unknown_indicator_registered(self, tracker):
        """New indicators start from the default base weight"""
        assert tracker.get_weight('ICHIMOKU') == 0.05

        entry = tracker.record_outcome('ICHIMOKU', True)
        assert entry.base_weight == 0.05
        assert 'ICHIMOKU' in tracker.snapshot().weights

    def test_deterministic(self):
        """Identical outcome sequences give identical tables"""
        outcomes = [{'RSI': i % 3 == 0, 'MACD': i % 2 == 0, 'ADX': True} for i in range(30)]

        a, b = AdaptiveWeightTracker(), AdaptiveWeightTracker()
        for batch in outcomes:
            a.record_outcomes(batch)
            b.record_outcomes(dict(reversed(list(batch.items()))))

        assert a.snapshot().as_dict() == b.snapshot().as_dict()

    def test_reset(self, tracker):
        for _ in range(10):
            tracker.record_outcome('MACD', True)
        tracker.reset()

        assert tracker.get_weight('MACD') == 0.24
        assert tracker.get_performance_stats()['MACD']['sample_count'] == 0

    def test_invalid_bounds(self):
        with pytest.raises(ValueError):
            WeightTrackerConfig(weight_floor=0.6, weight_ceiling=0.5)

    def test_base_weight_outside_bounds(self):
        with pytest.raises(ValueError):
            WeightTrackerConfig(base_weights={'MACD': 0.9})


class TestWeightSnapshots:
    """Test snapshot isolation and concurrency"""

    def test_snapshot_is_immutable(self, tracker):
        snapshot = tracker.snapshot()

        with pytest.raises(TypeError):
            snapshot.weights['MACD'] = None

    def test_old_snapshot_unchanged_by_update(self, tracker):
        """Readers holding a snapshot never see later writes"""
        before = tracker.snapshot()
        for _ in range(10):
            tracker.record_outcome('MACD', True)
        after = tracker.snapshot()

        assert before.get('MACD') == 0.24
        assert before.weights['MACD'].sample_count == 0
        assert after.version == before.version + 10

    def test_multi_indicator_update_is_one_version(self, tracker):
        snapshot = tracker.record_outcomes({'RSI': True, 'MACD': False, 'ADX': True})

        assert snapshot.version == 1
        assert tracker.snapshot() is snapshot

    def test_empty_update_is_noop(self, tracker):
        assert tracker.record_outcomes({}) is tracker.snapshot()
        assert tracker.snapshot().version == 0

    def test_concurrent_writers(self, tracker):
        """No update is lost under concurrent writers"""
        n_threads, per_thread = 8, 100
        barrier = threading.Barrier(n_threads)

        def writer(i):
            barrier.wait()
            for j in range(per_thread):
                tracker.record_outcomes({'RSI': (i + j) % 2 == 0, 'MACD': True})

        threads = [threading.Thread(target=writer, args=(i,)) for i in range(n_threads)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        snapshot = tracker.snapshot()
        assert snapshot.version == n_threads * per_thread
        assert snapshot.weights['MACD'].sample_count == 50
        assert snapshot.get('MACD') == pytest.approx(0.34)

    def test_concurrent_readers_see_complete_tables(self, tracker):
        """Every snapshot read mid-update holds all indicators with equal sample counts"""
        stop = threading.Event()
        errors = []

        def reader():
            while not stop.is_set():
                snapshot = tracker.snapshot()
                counts = {snapshot.weights[n].sample_count for n in ('RSI', 'MACD')}
                if len(counts) != 1:
                    errors.append(counts)

        readers = [threading.Thread(target=reader) for _ in range(4)]
        for t in readers:
            t.start()
        for _ in range(200):
            tracker.record_outcomes({'RSI': True, 'MACD': False})
        stop.set()
        for t in readers:
            t.join()

        assert errors == []
