from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from cube_tracker import capture as capture_mod
from cube_tracker.capture import (
    CameraNotFoundError,
    SyntheticCapture,
    USBOpenCVCapture,
    probe_devices,
    resolve_device,
)


def test_resolve_device():
    assert resolve_device("") == 0
    assert resolve_device("  ") == 0
    assert resolve_device("3") == 3
    assert resolve_device(2) == 2
    assert resolve_device("/dev/video1") == "/dev/video1"


@patch("cube_tracker.capture.time.strftime", return_value="ts")
@patch("cube_tracker.capture.cv2.VideoCapture")
def test_usb_capture_reads_frames(mock_cap_class, _mock_strftime):
    mock_cap = MagicMock()
    mock_cap.isOpened.return_value = True
    mock_cap.read.return_value = (True, "image")
    mock_cap_class.return_value = mock_cap

    capture = USBOpenCVCapture(device="", fps=30, width=640, height=480)
    capture.start()
    frame = capture.next_frame()
    capture.stop()

    mock_cap_class.assert_called_once_with(0, capture_mod.cv2.CAP_V4L2)
    mock_cap.set.assert_any_call(capture_mod.cv2.CAP_PROP_FRAME_WIDTH, 640)
    mock_cap.set.assert_any_call(capture_mod.cv2.CAP_PROP_FRAME_HEIGHT, 480)
    mock_cap.set.assert_any_call(capture_mod.cv2.CAP_PROP_FPS, 30)
    assert frame.image == "image"
    assert frame.idx == 1
    assert frame.ts_iso == "ts"
    mock_cap.release.assert_called_once()


@patch("cube_tracker.capture.cv2.VideoCapture")
def test_usb_capture_dev_path_uses_index(mock_cap_class):
    mock_cap_class.return_value.isOpened.return_value = True
    USBOpenCVCapture("/dev/video4", 30, 640, 480).start()
    mock_cap_class.assert_called_once_with(4, capture_mod.cv2.CAP_V4L2)


@patch("cube_tracker.capture.cv2.VideoCapture")
def test_usb_capture_failure_raises(mock_cap_class):
    mock_cap_class.return_value.isOpened.return_value = False
    with pytest.raises(CameraNotFoundError):
        USBOpenCVCapture(0, 30, 640, 480).start()


@patch("cube_tracker.capture.cv2.VideoCapture")
def test_usb_capture_failed_read_returns_none(mock_cap_class):
    mock_cap_class.return_value.isOpened.return_value = True
    mock_cap_class.return_value.read.return_value = (False, None)
    capture = USBOpenCVCapture(0, 30, 640, 480)
    capture.start()
    assert capture.next_frame() is None


@patch("cube_tracker.capture.cv2.VideoCapture")
def test_probe_devices_lists_openable_indices(mock_cap_class):
    caps = []
    for opened in (True, False, True):
        cap = MagicMock()
        cap.isOpened.return_value = opened
        caps.append(cap)
    mock_cap_class.side_effect = caps

    assert probe_devices(3) == [0, 2]
    for cap in caps:
        cap.release.assert_called_once()


def test_synthetic_capture_produces_blank_frames():
    capture = SyntheticCapture(fps=0, width=4, height=3)
    capture.start()
    f1 = capture.next_frame()
    f2 = capture.next_frame()
    capture.stop()

    assert (f1.idx, f2.idx) == (1, 2)
    assert f1.image.shape == (3, 4, 3)
    assert not np.any(f1.image)
