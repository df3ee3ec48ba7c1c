"""
Tests for the tracking session pipeline.
"""

import asyncio

import pytest

from gazetile.core.config import AppConfig, StorageConfig
from gazetile.core.session import TrackingSession
from gazetile.core.state import CalibrationState, InvalidTransitionError
from gazetile.scene.hit_test import Rect
from gazetile.scene.tree import NodeScene, SceneNode
from gazetile.storage.calibration_store import CalibrationStore
from gazetile.storage.schema import CalibrationRecord
from gazetile.storage.settings_store import JsonFileStore
from gazetile.tracking.affine import AffineTransform
from gazetile.tracking.sensor import RawPoint, ReplaySensor, Sensor


@pytest.fixture
def config(tmp_path):
    return AppConfig(storage=StorageConfig(data_dir=tmp_path))


@pytest.fixture
def scene():
    """Two side-by-side tiles on a 1000x800 page."""
    page = SceneNode("page", Rect(0, 0, 1000, 800))
    left = page.add(SceneNode("left", Rect(0, 0, 500, 800), tile="left"))
    left.add(SceneNode("left-label", Rect(100, 100, 200, 50)))
    page.add(SceneNode("right", Rect(500, 0, 500, 800), tile="right"))
    return NodeScene(page)


@pytest.fixture
def sensor():
    return ReplaySensor()


@pytest.fixture
def updates():
    return []


@pytest.fixture
def session(sensor, calibration_store, scene, config, updates):
    return TrackingSession(
        sensor,
        calibration_store,
        scene=scene,
        config=config,
        on_update=updates.append,
    )


def point(x, y, t=0.0):
    return RawPoint(float(x), float(y), t)


class TestLifecycle:
    """Start/stop behaviour."""

    def test_replay_sensor_satisfies_protocol(self, sensor):
        assert isinstance(sensor, Sensor)

    def test_start_attaches_listener(self, session, sensor):
        assert asyncio.run(session.start()) is True

        assert session.is_running
        assert sensor.is_running
        assert sensor.has_listener
        assert len(session.buffer) == 0
        assert session.transform.is_identity()

    def test_start_twice(self, session):
        async def scenario():
            assert await session.start() is True
            assert await session.start() is False

        asyncio.run(scenario())

    def test_stop_detaches_and_discards(self, session, sensor, updates):
        """No point is processed after stop() returns."""

        async def scenario():
            await session.start()
            sensor.push(point(10, 10))
            await session.stop()

        asyncio.run(scenario())

        assert not session.is_running
        assert not sensor.has_listener
        assert session.buffer is None
        assert session.smoother is None

        # A stale callback reference must not mutate anything
        session.handle_point(point(20, 20))
        assert len(updates) == 1

    def test_stop_when_not_running(self, session):
        assert asyncio.run(session.stop()) is False

    def test_loads_stored_calibration(self, session, calibration_store, skewed_transform):
        calibration_store.save(CalibrationRecord(transform=skewed_transform))

        asyncio.run(session.start())

        assert session.transform == skewed_transform

    def test_unreadable_settings_file_starts_with_identity(self, tmp_path, sensor, config):
        """A settings file that is not UTF-8 must not block tracking."""
        file_store = JsonFileStore(tmp_path)
        file_store.path.write_bytes(b'{"eye-gaze-affine-v1": "\xff\xfe"}')
        session = TrackingSession(sensor, CalibrationStore(file_store), config=config)

        assert asyncio.run(session.start()) is True
        assert session.transform.is_identity()

    def test_sensor_start_failure_detaches(self, calibration_store, config):
        class BrokenSensor(ReplaySensor):
            async def start(self):
                raise RuntimeError("no camera")

        sensor = BrokenSensor()
        session = TrackingSession(sensor, calibration_store, config=config)

        with pytest.raises(RuntimeError, match="no camera"):
            asyncio.run(session.start())

        assert not session.is_running
        assert not sensor.has_listener


class TestPipeline:
    """Per-point processing."""

    def test_point_flows_through_pipeline(self, session, sensor, updates):
        asyncio.run(session.start())

        sensor.push(point(150, 120, 0.0))

        assert len(updates) == 1
        update = updates[0]
        assert update.corrected == (150.0, 120.0)
        # First point seeds the smoother
        assert update.smoothed == (150.0, 120.0)
        assert update.hit.element_id == "left"
        assert update.hit.bounding_rect == Rect(100, 100, 200, 50)
        assert update.tile_changed
        assert len(session.buffer) == 1

    def test_correction_applied_before_smoothing(self, session, sensor, updates, skewed_transform):
        asyncio.run(session.start())
        session.set_transform(skewed_transform)

        sensor.push(point(400, 300))
        sensor.push(point(420, 310))

        expected_first = skewed_transform.apply(400, 300)
        expected_second = skewed_transform.apply(420, 310)
        assert updates[0].smoothed == pytest.approx(expected_first)
        assert updates[1].corrected == pytest.approx(expected_second)
        assert updates[1].smoothed == pytest.approx(
            tuple(0.3 * b + 0.7 * a for a, b in zip(expected_first, expected_second))
        )

    def test_buffer_stores_raw_points(self, session, sensor, skewed_transform):
        """The ring buffer keeps uncorrected sensor readings."""
        asyncio.run(session.start())
        session.set_transform(skewed_transform)

        sensor.push(point(400, 300))

        assert list(session.buffer) == [point(400, 300)]

    def test_lost_tracking_skips_tick(self, session, sensor, updates):
        """A None point changes nothing."""
        asyncio.run(session.start())
        sensor.push(point(100, 100))
        smoothed_before = session.smoother.current_position

        sensor.push(None)

        assert len(updates) == 1
        assert len(session.buffer) == 1
        assert session.smoother.current_position == smoothed_before

    def test_tile_change_reported_once(self, session, sensor, updates):
        asyncio.run(session.start())
        session.set_transform(AffineTransform.identity())

        for _ in range(3):
            sensor.push(point(200, 200))
        # Jump right; EMA with a fresh seed would land there immediately
        session.smoother.reset()
        sensor.push(point(800, 200))

        changes = [u.hit.element_id for u in updates if u.tile_changed]
        assert changes == ["left", "right"]
        assert session.last_hit.element_id == "right"

    def test_reentrant_point_dropped(self, calibration_store, scene, config):
        """A point delivered while the pipeline is mid-tick is not processed."""
        sensor = ReplaySensor()
        seen = []

        class FiringScene(NodeScene):
            """Scene whose hit-test makes the sensor fire synchronously."""

            def element_at(self, x, y):
                sensor.push(point(999, 999))
                return super().element_at(x, y)

        session = TrackingSession(
            sensor,
            calibration_store,
            scene=FiringScene(scene.root),
            config=config,
            on_update=lambda update: seen.append(update.raw),
        )
        asyncio.run(session.start())

        sensor.push(point(1, 1))

        assert seen == [point(1, 1)]
        assert len(session.buffer) == 1

    def test_sample_rate_from_timestamps(self, session, sensor):
        asyncio.run(session.start())

        for i in range(10):
            sensor.push(point(100, 100, i * 0.02))

        assert session.sample_rate == pytest.approx(50.0)


class TestCalibrationIntegration:
    """Calibration driven through the tracking session."""

    def feed_targets(self, session, sensor, sensor_from_screen, count):
        calibration = session.begin_calibration(1000, 800)
        clock = 0.0
        for target in calibration.targets[:count]:
            raw = sensor_from_screen.apply(target.x, target.y)
            for _ in range(20):
                clock += 1 / 30
                sensor.push(RawPoint(raw[0], raw[1], clock))
            calibration.record_sample(target.target_id)
        return calibration

    def test_calibration_requires_running_session(self, session):
        with pytest.raises(InvalidTransitionError):
            session.begin_calibration(1000, 800)

    def test_finish_adopts_and_persists(self, session, sensor, calibration_store, skewed_transform):
        asyncio.run(session.start())

        calibration = self.feed_targets(session, sensor, skewed_transform, 9)
        fit = calibration.finish()

        assert calibration.state is CalibrationState.FITTED
        assert session.transform == fit.transform
        assert calibration_store.load_transform() == fit.transform

        record = calibration_store.load()
        assert record.sample_count == 9
        assert (record.viewport_width, record.viewport_height) == (1000, 800)

        # Corrected output now lands on the screen position
        raw = skewed_transform.apply(850.0, 640.0)
        session.smoother.reset()
        sensor.push(RawPoint(raw[0], raw[1], 100.0))
        assert session.last_update.smoothed == pytest.approx((850.0, 640.0), abs=1e-3)

    def test_cancel_persists_nothing(self, session, sensor, calibration_store, skewed_transform):
        asyncio.run(session.start())

        calibration = self.feed_targets(session, sensor, skewed_transform, 6)
        calibration.cancel()

        assert session.transform.is_identity()
        assert calibration_store.load() is None

    def test_stop_cancels_open_calibration(self, session, sensor, calibration_store, skewed_transform):
        """A calibration left open across stop/start cannot be finished later."""
        asyncio.run(session.start())
        calibration = self.feed_targets(session, sensor, skewed_transform, 6)

        asyncio.run(session.stop())
        asyncio.run(session.start())

        assert calibration.state is CalibrationState.CANCELLED
        with pytest.raises(InvalidTransitionError):
            calibration.record_sample(calibration.targets[0].target_id)
        with pytest.raises(InvalidTransitionError):
            calibration.finish()
        assert session.transform.is_identity()
        assert calibration_store.load() is None

    def test_new_calibration_replaces_open_one(self, session, sensor, skewed_transform):
        asyncio.run(session.start())
        first = self.feed_targets(session, sensor, skewed_transform, 2)

        second = session.begin_calibration(1000, 800)

        assert first.state is CalibrationState.CANCELLED
        assert second.state is CalibrationState.IDLE

    def test_calibration_does_not_mutate_buffer(self, session, sensor, skewed_transform):
        asyncio.run(session.start())

        calibration = self.feed_targets(session, sensor, skewed_transform, 5)
        before = list(session.buffer)
        calibration.finish()

        assert list(session.buffer) == before

    def test_clear_calibration(self, session, sensor, calibration_store, skewed_transform):
        calibration_store.save(CalibrationRecord(transform=skewed_transform))
        asyncio.run(session.start())

        assert session.clear_calibration() is True
        assert session.transform.is_identity()
        assert calibration_store.load() is None
