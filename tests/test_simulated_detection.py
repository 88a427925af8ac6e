"""Tests for the simulated sensor and estimator."""

import numpy as np
import pytest

from capture.sensor_device import StreamConfig
from capture.simulated_sensor import SimulatedSensor
from contracts import TrackingState
from estimate.simulated_estimator import SimulatedEstimatorFactory, SimulatedPoseEstimator
from exceptions import DeviceConnectionError, EstimatorError, EstimatorInitError, FrameAcquisitionError


def _open_sensor(**kwargs) -> SimulatedSensor:
    sensor = SimulatedSensor(realtime=False, seed=1, **kwargs)
    sensor.open()
    sensor.configure(StreamConfig("RgbResolution640x480Fps30", "Resolution320x240Fps30"))
    return sensor


class TestSimulatedSensor:
    def test_batch_shapes_follow_formats(self):
        batch = _open_sensor().read_batch(100)

        assert batch.color_buffer.shape == (480, 640, 4)
        assert batch.color_buffer.dtype == np.uint8
        assert batch.depth_buffer.shape == (240, 320)
        assert batch.depth_buffer.dtype == np.int16
        assert batch.is_complete

    def test_frame_numbers_increase_and_wrap(self):
        sensor = _open_sensor(start_frame=0xFFFFFFFE)
        numbers = [sensor.read_batch(100).frame_number for _ in range(3)]
        assert numbers == [0xFFFFFFFE, 0xFFFFFFFF, 0]

    def test_subjects_reported_per_slot(self):
        sensor = _open_sensor(subject_count=2)
        batch = sensor.read_batch(100)

        assert len(batch.subjects) == 2
        assert {s.subject_id for s in batch.subjects} == {1, 2}
        for subject in batch.subjects:
            if subject.state is TrackingState.TRACKED:
                assert subject.geometry.shape == (4, 3)

    def test_format_change_is_reflected(self):
        sensor = _open_sensor()
        sensor.set_streams("RgbResolution1280x960Fps12", "Resolution640x480Fps30")
        batch = sensor.read_batch(100)

        assert batch.color_format == "RgbResolution1280x960Fps12"
        assert batch.color_buffer.shape == (960, 1280, 4)

    def test_drop_rate_produces_incomplete_batches(self):
        sensor = _open_sensor(drop_rate=1.0)
        assert not sensor.read_batch(100).is_complete

    def test_fault_rate_raises_acquisition_error(self):
        sensor = _open_sensor(fault_rate=1.0)
        with pytest.raises(FrameAcquisitionError) as exc_info:
            sensor.read_batch(100)
        assert exc_info.value.device_id == "sim-0"

    def test_read_requires_open(self):
        sensor = SimulatedSensor(realtime=False)
        with pytest.raises(DeviceConnectionError):
            sensor.read_batch(100)

    def test_subject_ids_change_between_episodes(self):
        sensor = _open_sensor()
        seen = set()
        for _ in range(1500):
            seen.update(s.subject_id for s in sensor.read_batch(100).subjects)
        assert len(seen) >= 2


class TestSimulatedEstimator:
    def _geometry(self, head=(0.0, 0.4, 1.2)):
        head = np.array(head)
        center = head - np.array([0.0, 0.25, 0.0])
        return np.stack([head, center, center - [0.18, 0, 0], center + [0.18, 0, 0]])

    def _track(self, estimator, geometry):
        color = np.zeros((4, 4, 4), dtype=np.uint8)
        depth = np.zeros((2, 2), dtype=np.int16)
        return estimator.track("c", color, "d", depth, geometry)

    def test_facing_forward(self):
        result = self._track(SimulatedPoseEstimator(), self._geometry())

        assert result.success
        assert result.rotation == pytest.approx((0.0, 0.0, 0.0), abs=1e-9)
        assert result.translation == pytest.approx((0.0, 0.4, 1.2))

    def test_out_of_range_fails(self):
        result = self._track(SimulatedPoseEstimator(), self._geometry(head=(0.0, 0.4, 6.0)))
        assert not result.success

    def test_missing_geometry_fails(self):
        assert not self._track(SimulatedPoseEstimator(), None).success

    def test_closed_estimator_raises(self):
        estimator = SimulatedPoseEstimator()
        estimator.close()
        with pytest.raises(EstimatorError):
            self._track(estimator, self._geometry())

    def test_factory_failure(self):
        factory = SimulatedEstimatorFactory(fail_on_create=True)
        with pytest.raises(EstimatorInitError):
            factory(SimulatedSensor(realtime=False))
        assert factory.created == 0
