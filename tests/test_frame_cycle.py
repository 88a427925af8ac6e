"""Tests for the per-device frame cycle coordinator."""

import numpy as np
import pytest

from app.pipeline.frame_cycle import FrameCycleCoordinator
from broadcast.fanout import BroadcastFanOut
from broadcast.registry import ConnectionRegistry
from contracts import FrameBatch, PoseResult, TrackingState
from telemetry.monitor import TelemetryMonitor
from track.table import SubjectTrackerTable

TRACKED = TrackingState.TRACKED
POSITION_ONLY = TrackingState.POSITION_ONLY
NOT_TRACKED = TrackingState.NOT_TRACKED


@pytest.fixture
def client(connection_factory):
    return connection_factory()


@pytest.fixture
def telemetry():
    return TelemetryMonitor()


@pytest.fixture
def coordinator(device, factory, client, telemetry):
    registry = ConnectionRegistry()
    registry.register(client)
    table = SubjectTrackerTable(device, factory, max_missed_frames=100)
    return FrameCycleCoordinator(2, table, BroadcastFanOut(registry), telemetry)


def test_not_tracked_subjects_are_ignored(coordinator, batch_factory, factory, client):
    results = coordinator.process_batch(batch_factory(1, [(5, NOT_TRACKED)]))

    assert results == []
    assert 5 not in coordinator.table
    assert factory.created == []
    assert client.written == []


def test_not_tracked_does_not_refresh_existing_tracker(coordinator, batch_factory):
    coordinator.process_batch(batch_factory(1, [(5, TRACKED)]))
    coordinator.process_batch(batch_factory(50, [(5, NOT_TRACKED)]))

    assert coordinator.table.get(5).last_seen_frame == 1
    coordinator.process_batch(batch_factory(102, [(5, NOT_TRACKED)]))
    assert 5 not in coordinator.table


def test_position_only_is_tracked_but_not_estimated(coordinator, batch_factory, factory, client):
    results = coordinator.process_batch(batch_factory(1, [(5, POSITION_ONLY)]))

    assert results == []
    assert coordinator.table.get(5).last_seen_frame == 1
    assert factory.created == []
    assert client.written == []


def test_each_success_broadcast_once(coordinator, batch_factory, client):
    results = coordinator.process_batch(
        batch_factory(7, [(1, TRACKED), (2, TRACKED), (3, POSITION_ONLY)])
    )

    assert [r.subject_id for r in results] == [1, 2]
    assert client.written == [b"Kinect 2 0 0 0 1 2 3\n"] * 2


def test_failed_estimates_are_not_broadcast(device, factory, client, batch_factory):
    factory.result = PoseResult.failed()
    registry = ConnectionRegistry()
    registry.register(client)
    coordinator = FrameCycleCoordinator(
        0, SubjectTrackerTable(device, factory), BroadcastFanOut(registry)
    )

    assert coordinator.process_batch(batch_factory(1, [(1, TRACKED)])) == []
    assert client.written == []
    assert 1 in coordinator.table


def test_sweep_runs_after_updates(coordinator, batch_factory):
    coordinator.process_batch(batch_factory(10, [(1, TRACKED), (2, TRACKED)]))
    coordinator.process_batch(batch_factory(111, [(2, TRACKED)]))

    assert 1 not in coordinator.table
    assert 2 in coordinator.table


def test_incomplete_batch_is_skipped_entirely(coordinator, batch_factory, factory, telemetry):
    coordinator.process_batch(batch_factory(10, [(1, TRACKED)]))

    results = coordinator.process_batch(batch_factory(500, [(2, TRACKED)], complete=False))

    assert results == []
    assert 1 in coordinator.table  # no sweep
    assert 2 not in coordinator.table  # no update
    assert telemetry.skipped_by_device == {2: 1}


def test_missing_batch_is_skipped(coordinator, telemetry):
    assert coordinator.process_batch(None) == []
    assert telemetry.skipped_by_device == {2: 1}


def test_missing_subject_data_is_skipped(coordinator):
    batch = FrameBatch(
        frame_number=1,
        color_format="c",
        color_buffer=np.zeros((2, 2, 4), dtype=np.uint8),
        depth_format="d",
        depth_buffer=np.zeros((2, 2), dtype=np.int16),
        subjects=None,
    )
    assert coordinator.process_batch(batch) == []


def test_color_format_change_creates_fresh_tracker(coordinator, batch_factory, factory):
    coordinator.process_batch(batch_factory(1, [(9, TRACKED)], color_format="A"))
    before = coordinator.table.get(9)

    coordinator.process_batch(batch_factory(2, [(9, TRACKED)], color_format="B"))
    after = coordinator.table.get(9)

    assert after is not before
    assert before.released
    assert len(factory.created) == 2
    assert factory.created[0] is not factory.created[1]
    assert factory.created[0].close_count == 1
    assert factory.created[1].close_count == 0


def test_depth_format_change_resets_table(coordinator, batch_factory, factory):
    coordinator.process_batch(batch_factory(1, [(1, TRACKED), (2, TRACKED)], depth_format="A"))
    coordinator.process_batch(batch_factory(2, [], depth_format="B"))

    assert len(coordinator.table) == 0
    assert [e.close_count for e in factory.created] == [1, 1]


def test_same_format_keeps_trackers(coordinator, batch_factory, factory):
    coordinator.process_batch(batch_factory(1, [(1, TRACKED)]))
    coordinator.process_batch(batch_factory(2, [(1, TRACKED)]))

    assert len(factory.created) == 1


def test_buffers_are_copied_and_reused(coordinator, batch_factory):
    batch = batch_factory(1, [])
    coordinator.process_batch(batch)
    color = coordinator.color_image

    assert color is not batch.color_buffer
    np.testing.assert_array_equal(color, batch.color_buffer)

    coordinator.process_batch(batch_factory(2, []))
    assert coordinator.color_image is color


def test_format_change_reallocates_buffers(coordinator, batch_factory):
    coordinator.process_batch(batch_factory(1, [], color_format="A"))
    color = coordinator.color_image
    depth = coordinator.depth_image

    coordinator.process_batch(batch_factory(2, [], color_format="B"))

    assert coordinator.color_image is not color
    assert coordinator.depth_image is depth


def test_reset_releases_everything(coordinator, batch_factory, factory):
    coordinator.process_batch(batch_factory(1, [(1, TRACKED)]))
    coordinator.reset()

    assert len(coordinator.table) == 0
    assert coordinator.color_image is None
    assert factory.created[0].close_count == 1


def test_telemetry_counts_processed_batches(coordinator, batch_factory, telemetry):
    coordinator.process_batch(batch_factory(1, [(1, TRACKED)]))
    coordinator.process_batch(batch_factory(2, [(1, TRACKED)]))

    assert telemetry.batches_by_device == {2: 2}
    assert telemetry.poses_estimated == 2
    assert len(telemetry.latency_samples_ms) == 2


def test_estimator_fault_does_not_skip_sweep_or_broadcast(device, factory, client, batch_factory):
    registry = ConnectionRegistry()
    registry.register(client)
    coordinator = FrameCycleCoordinator(
        0, SubjectTrackerTable(device, factory, max_missed_frames=5), BroadcastFanOut(registry)
    )
    coordinator.process_batch(batch_factory(1, [(9, POSITION_ONLY)]))
    coordinator.process_batch(batch_factory(2, [(1, TRACKED), (2, TRACKED)]))
    factory.created[0].error = ValueError("bad geometry")
    client.written.clear()

    results = coordinator.process_batch(batch_factory(100, [(1, TRACKED), (2, TRACKED)]))

    assert [r.subject_id for r in results] == [2]
    assert 9 not in coordinator.table
    assert 1 in coordinator.table
    assert client.written == [b"Kinect 0 0 0 0 1 2 3\n"]
