import numpy as np
import pytest

from cube_tracker.faces import FaceOffset, FaceOffsetTable
from cube_tracker.filter import FrameContext, PoseFusionFilter, SmoothedPose, compose_candidate
from cube_tracker.marker_source import ManualMarkerSource
from cube_tracker.transforms import euler_to_q, q_identity, q_mul, q_slerp, v_lerp, v_slerp

NAN = float("nan")


def _table(*ids, position=(0.0, 0.0, 0.0), rotation=(0.0, 0.0, 0.0)):
    return FaceOffsetTable(FaceOffset(i, position, rotation) for i in ids)


def _filter(faces=None, **kwargs):
    source = ManualMarkerSource()
    flt = PoseFusionFilter(faces, **kwargs)
    flt.bind(source)
    return flt, source


def test_initial_pose_is_identity():
    flt = PoseFusionFilter()
    pose = flt.pose
    np.testing.assert_array_equal(pose.position, np.zeros(3))
    np.testing.assert_array_equal(pose.rotation, q_identity())


def test_no_visible_marker_leaves_pose_unchanged():
    flt, source = _filter(marker_size=0.1, smoothing_factor=0.5)
    source.show(0, (1.0, 2.0, 3.0), euler_to_q(10, 20, 30))
    flt.update(source)
    before = flt.pose

    source.clear()
    after = flt.update(source)

    np.testing.assert_array_equal(after.position, before.position)
    np.testing.assert_array_equal(after.rotation, before.rotation)
    assert flt.last_result.visible == []


def test_candidate_adds_scaled_face_offset():
    face = FaceOffset(0, (0.0, 0.0, 0.5), (0.0, 0.0, 0.0))
    position, rotation = compose_candidate(face, np.array([1.0, 0.0, 0.0]), q_identity(), 0.1)
    np.testing.assert_allclose(position, [1.0, 0.0, 0.05])
    np.testing.assert_allclose(rotation, q_identity())


def test_single_marker_snap_reaches_candidate():
    faces = FaceOffsetTable([FaceOffset(0, (0.0, 0.0, 0.5), (0.0, 0.0, 0.0))])
    flt, source = _filter(faces, marker_size=0.1, smoothing_factor=1.0)
    source.show(0, (1.0, 0.0, 0.0), q_identity())

    pose = flt.update(source)

    np.testing.assert_allclose(pose.position, [1.0, 0.0, 0.05], atol=1e-12)
    np.testing.assert_allclose(pose.rotation, q_identity(), atol=1e-12)


def test_candidate_offset_is_rotated_into_marker_frame():
    raw_rot = euler_to_q(0.0, 90.0, 0.0)
    face = FaceOffset(0, (0.0, 0.0, 0.5), (0.0, 0.0, 90.0))
    position, rotation = compose_candidate(face, np.zeros(3), raw_rot, 1.0)

    np.testing.assert_allclose(position, [0.5, 0.0, 0.0], atol=1e-12)
    np.testing.assert_allclose(rotation, q_mul(raw_rot, euler_to_q(0.0, 0.0, 90.0)), atol=1e-12)


@pytest.mark.parametrize("blend, fn", [("slerp", v_slerp), ("lerp", v_lerp)])
def test_single_marker_follows_interpolation_law(blend, fn):
    faces = FaceOffsetTable([FaceOffset(0, (0.0, 0.0, 0.5), (0.0, 0.0, 0.0))])
    flt, source = _filter(faces, marker_size=0.1, smoothing_factor=0.3, position_blend=blend)

    source.show(0, (1.0, 0.0, 0.0), euler_to_q(0, 0, 20))
    flt.update(source)
    old = flt.pose

    raw_pos, raw_rot = np.array([0.2, 0.8, 1.5]), euler_to_q(5, 40, 0)
    source.show(0, raw_pos, raw_rot)
    new = flt.update(source)

    cand_pos, cand_rot = compose_candidate(faces[0], raw_pos, raw_rot, 0.1)
    np.testing.assert_allclose(new.position, fn(old.position, cand_pos, 0.3), rtol=0, atol=1e-15)
    np.testing.assert_allclose(new.rotation, q_slerp(old.rotation, cand_rot, 0.3), rtol=0, atol=1e-15)


def test_small_smoothing_factor_barely_moves():
    flt, source = _filter(_table(0), marker_size=0.1, smoothing_factor=1e-6)
    source.show(0, (1.0, 1.0, 1.0), euler_to_q(0, 90, 0))

    pose = flt.update(source)

    assert np.linalg.norm(pose.position) < 1e-5
    assert abs(float(np.dot(pose.rotation, q_identity()))) > 1.0 - 1e-9


def test_markers_fold_sequentially_in_id_order():
    flt, source = _filter(marker_size=0.1, smoothing_factor=0.5, position_blend="lerp")
    raw_pos, raw_rot = np.array([0.0, 0.0, 1.0]), q_identity()
    source.show(10, raw_pos, raw_rot)
    source.show(0, raw_pos, raw_rot)

    pose = flt.update(source)

    c0_pos, c0_rot = compose_candidate(flt.faces[0], raw_pos, raw_rot, 0.1)
    c10_pos, c10_rot = compose_candidate(flt.faces[10], raw_pos, raw_rot, 0.1)
    start = SmoothedPose.identity()
    mid_pos = v_lerp(start.position, c0_pos, 0.5)
    mid_rot = q_slerp(start.rotation, c0_rot, 0.5)
    np.testing.assert_allclose(pose.position, v_lerp(mid_pos, c10_pos, 0.5), atol=1e-12)
    np.testing.assert_allclose(pose.rotation, q_slerp(mid_rot, c10_rot, 0.5), atol=1e-12)

    averaged = v_lerp(start.position, (c0_pos + c10_pos) / 2.0, 0.5)
    assert not np.allclose(pose.position, averaged)
    assert flt.last_result.applied == [0, 10]


def test_nan_candidate_aborts_rest_of_frame_but_keeps_earlier_updates():
    # Order-dependent: marker 20 is valid but never reached once 10 fails.
    flt, source = _filter(_table(0, 10, 20), marker_size=0.1, smoothing_factor=1.0, position_blend="lerp")
    source.show(0, (1.0, 0.0, 0.0), q_identity())
    source.show(10, (NAN, 0.0, 0.0), q_identity())
    source.show(20, (5.0, 5.0, 5.0), q_identity())

    pose = flt.update(source, FrameContext(frame_idx=7))

    np.testing.assert_allclose(pose.position, [1.0, 0.0, 0.0])
    assert flt.last_result.applied == [0]
    assert flt.last_result.aborted_at == 10
    assert flt.last_result.aborted


def test_nan_in_first_marker_blocks_all_later_markers():
    flt, source = _filter(_table(0, 10), marker_size=0.1, smoothing_factor=1.0)
    source.show(0, (0.0, 0.0, 0.0), np.array([1.0, 0.0, NAN, 0.0]))
    source.show(10, (2.0, 0.0, 0.0), q_identity())

    pose = flt.update(source)

    np.testing.assert_array_equal(pose.position, np.zeros(3))
    np.testing.assert_array_equal(pose.rotation, q_identity())
    assert flt.last_result.applied == []


def test_nan_does_not_poison_following_frames():
    flt, source = _filter(_table(0), marker_size=0.1, smoothing_factor=1.0)
    source.show(0, (NAN, NAN, NAN), q_identity())
    flt.update(source)

    source.show(0, (3.0, 0.0, 0.0), q_identity())
    pose = flt.update(source)
    np.testing.assert_allclose(pose.position, [3.0, 0.0, 0.0], atol=1e-12)


def test_unregistered_markers_are_ignored():
    flt, source = _filter(_table(0), marker_size=0.1, smoothing_factor=1.0)
    source.show(7, (1.0, 1.0, 1.0), q_identity())

    pose = flt.update(source)

    assert not source.is_visible(12345)
    np.testing.assert_array_equal(pose.position, np.zeros(3))


def test_update_binds_on_first_use():
    source = ManualMarkerSource()
    flt = PoseFusionFilter(_table(0), marker_size=0.1, smoothing_factor=1.0)
    source.show(0, (1.0, 0.0, 0.0), q_identity())

    pose = flt.update(source)

    assert flt.binding is not None
    np.testing.assert_allclose(pose.position, [1.0, 0.0, 0.0], atol=1e-12)


def test_returned_pose_is_a_snapshot():
    flt, source = _filter(_table(0), marker_size=0.1, smoothing_factor=1.0)
    source.show(0, (1.0, 0.0, 0.0), q_identity())
    pose = flt.update(source)
    pose.position[0] = 99.0
    assert flt.pose.position[0] == pytest.approx(1.0)


def test_reset_restores_identity():
    flt, source = _filter(_table(0), marker_size=0.1, smoothing_factor=1.0)
    source.show(0, (1.0, 0.0, 0.0), euler_to_q(0, 30, 0))
    flt.update(source)
    flt.reset()
    np.testing.assert_array_equal(flt.pose.position, np.zeros(3))
    np.testing.assert_array_equal(flt.pose.rotation, q_identity())


@pytest.mark.parametrize(
    "kwargs",
    [
        {"marker_size": 0.0},
        {"marker_size": -1.0},
        {"smoothing_factor": 0.0},
        {"smoothing_factor": 1.5},
        {"position_blend": "cubic"},
    ],
)
def test_invalid_configuration_rejected(kwargs):
    with pytest.raises(ValueError):
        PoseFusionFilter(**kwargs)
