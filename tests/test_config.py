import json
from pathlib import Path

import pytest

from cube_tracker.config import FaceConfig, TrackerConfig, load_config


def test_load_config_json(tmp_path: Path):
    cfg_path = tmp_path / "cube.json"
    cfg_path.write_text(
        json.dumps(
            {
                "camera_name": "deskcam",
                "device": 2,
                "fps": 60,
                "width": 1280,
                "height": 720,
                "marker_length_m": 0.04,
                "smoothing_factor": 0.5,
                "faces": [
                    {"marker_id": 3, "position": [0, 0, 0.5], "rotation": [0, 180, 90], "name": "top"},
                    {"marker_id": 1, "position": [0.5, 0, 0]},
                ],
            }
        ),
        encoding="utf-8",
    )

    cfg = load_config(cfg_path)
    assert cfg.camera_name == "deskcam"
    assert cfg.device == 2
    assert cfg.fps == 60
    assert cfg.width == 1280
    assert cfg.height == 720
    assert cfg.marker_length_m == 0.04
    assert cfg.smoothing_factor == 0.5

    table = cfg.face_table()
    assert table.ids() == (1, 3)
    assert table[3].name == "top"
    assert list(table[1].local_rotation_euler) == [0.0, 0.0, 0.0]

    cfg.apply_overrides(camera_name="other", fps=None, bogus=1)
    assert cfg.camera_name == "other"
    assert cfg.fps == 60
    assert not hasattr(cfg, "bogus")


def test_load_config_yaml(tmp_path: Path):
    cfg_path = tmp_path / "cube.yaml"
    cfg_path.write_text(
        "camera_name: yamlcam\n"
        "smoothing_factor: 1.0\n"
        "position_blend: lerp\n"
        "max_frames: 10\n",
        encoding="utf-8",
    )

    cfg = load_config(cfg_path)
    assert cfg.camera_name == "yamlcam"
    assert cfg.smoothing_factor == 1.0
    assert cfg.position_blend == "lerp"
    assert cfg.max_frames == 10
    assert cfg.faces is None
    assert len(cfg.face_table()) == 6


def test_config_defaults():
    cfg = TrackerConfig()
    assert cfg.device == ""
    assert cfg.width == 640 and cfg.height == 480 and cfg.fps == 30
    assert cfg.marker_length_m == 0.05
    assert cfg.smoothing_factor == 0.2
    cfg.validate()


def test_missing_config_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.json")


def test_config_root_must_be_mapping(tmp_path: Path):
    cfg_path = tmp_path / "list.json"
    cfg_path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(cfg_path)


@pytest.mark.parametrize(
    "raw",
    [
        {"smoothing_factor": 0.0},
        {"smoothing_factor": 1.01},
        {"marker_length_m": -0.05},
        {"position_blend": "nearest"},
        {"faces": [{"position": [0, 0, 0]}]},
        {"faces": [{"marker_id": 1, "position": [0, 0]}]},
        {"faces": [{"marker_id": 1, "position": [0, 0, 0]}, {"marker_id": 1, "position": [1, 0, 0]}]},
        {"faces": {"marker_id": 1}},
    ],
)
def test_invalid_values_rejected(tmp_path: Path, raw):
    cfg_path = tmp_path / "bad.json"
    cfg_path.write_text(json.dumps(raw), encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(cfg_path)


def test_validate_rejects_faces_outside_dictionary():
    with pytest.raises(ValueError, match="outside"):
        TrackerConfig(aruco_dict="4x4_50").validate()


def test_validate_accepts_small_dictionary_for_low_ids():
    cfg = TrackerConfig(
        aruco_dict="4x4_50",
        faces=[FaceConfig(0, [0.0, 0.0, 0.5], [0.0, 0.0, 0.0]), FaceConfig(49, [0.5, 0.0, 0.0], [0.0, 0.0, 0.0])],
    )
    assert cfg.validate() is cfg


def test_validate_rejects_unknown_log_level():
    with pytest.raises(ValueError):
        TrackerConfig(log_level="chatty").validate()
    with pytest.raises(ValueError):
        TrackerConfig(log_file_level="nope").validate()
