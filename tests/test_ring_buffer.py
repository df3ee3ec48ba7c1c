"""
Tests for the raw point ring buffer.
"""

import pytest

from gazetile.tracking.buffer import RingBuffer
from gazetile.tracking.sensor import RawPoint


def make_points(count, start=0):
    return [RawPoint(x=float(i), y=float(2 * i), timestamp=i / 30.0) for i in range(start, start + count)]


class TestRingBuffer:
    """Tests for RingBuffer."""

    def test_default_capacity(self):
        """Default capacity is 200."""
        assert RingBuffer().capacity == 200

    def test_bounded_and_ordered(self):
        """Overflow keeps exactly the newest `capacity` points, oldest first."""
        buffer = RingBuffer()
        points = make_points(537)

        for point in points:
            buffer.append(point)
            assert len(buffer) <= 200

        assert len(buffer) == 200
        assert list(buffer) == points[-200:]

    def test_recent_returns_newest_in_order(self):
        """recent(n) is the tail of the buffer in chronological order."""
        buffer = RingBuffer(capacity=10)
        for point in make_points(25):
            buffer.append(point)

        recent = buffer.recent(3)

        assert [p.x for p in recent] == [22.0, 23.0, 24.0]

    def test_recent_with_fewer_points(self):
        """recent(n) returns everything when fewer than n are held."""
        buffer = RingBuffer()
        for point in make_points(4):
            buffer.append(point)

        assert len(buffer.recent(20)) == 4
        assert buffer.recent(0) == []

    def test_mean(self):
        """mean(n) averages the newest n points."""
        buffer = RingBuffer()
        for point in make_points(30):
            buffer.append(point)

        mean_x, mean_y = buffer.mean(20)

        # Points 10..29
        assert mean_x == pytest.approx(19.5)
        assert mean_y == pytest.approx(39.0)

    def test_mean_of_empty_buffer(self):
        """mean() of an empty buffer is None."""
        assert RingBuffer().mean(20) is None

    def test_recent_does_not_mutate(self):
        """Reading recent points leaves the buffer untouched."""
        buffer = RingBuffer()
        points = make_points(12)
        for point in points:
            buffer.append(point)

        buffer.recent(5)
        buffer.mean(5)

        assert list(buffer) == points

    def test_clear(self):
        buffer = RingBuffer()
        for point in make_points(5):
            buffer.append(point)

        buffer.clear()

        assert len(buffer) == 0

    @pytest.mark.parametrize("capacity", [0, -3])
    def test_invalid_capacity(self, capacity):
        """Capacity must be positive."""
        with pytest.raises(ValueError, match="capacity"):
            RingBuffer(capacity=capacity)
