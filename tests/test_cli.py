"""Tests for the command-line entry point."""

import numpy as np
import pytest

from cutout import cli
from cutout.compositing.codec import decode_image
from cutout.segmentation import backends

from conftest import FakeBackend, make_segment, png_bytes


@pytest.fixture
def fake_backend(monkeypatch):
    created = []

    def factory(config=None, result=None):
        backend = FakeBackend(result=result or [make_segment("person", 2, 2, 1.0)])
        created.append(backend)
        return backend

    monkeypatch.setitem(backends.BACKENDS, "fake", factory)
    return created


@pytest.fixture
def photo(tmp_path):
    rgba = np.zeros((4, 6, 4), dtype=np.uint8)
    rgba[..., 1] = 200
    rgba[..., 3] = 255
    path = tmp_path / "photo.png"
    path.write_bytes(png_bytes(rgba))
    return path


def test_writes_default_output(photo, fake_backend):
    code = cli.main([str(photo), "--backend", "fake", "--blur-radius", "0", "--gamma", "2"])

    assert code == 0
    output = photo.with_name("photo_cutout.png")
    image = decode_image(output.read_bytes())
    assert image.size == (6, 4)
    assert np.all(image.pixels[..., 3] == 0)
    assert np.all(image.pixels[..., 1] == 200)
    assert fake_backend[0].models[0].closed


def test_explicit_output_path(photo, tmp_path, fake_backend):
    target = tmp_path / "out" / "result.png"

    assert cli.main([str(photo), "-o", str(target), "--backend", "fake"]) == 0
    assert target.exists()


def test_missing_input(tmp_path, fake_backend):
    assert cli.main([str(tmp_path / "missing.jpg"), "--backend", "fake"]) == 2
    assert fake_backend == []


def test_invalid_override(photo, fake_backend):
    assert cli.main([str(photo), "--backend", "fake", "--gamma", "-1"]) == 2


def test_pipeline_failure_exit_code(photo, monkeypatch):
    monkeypatch.setitem(
        backends.BACKENDS,
        "fake",
        lambda config=None: FakeBackend(result=[make_segment("background", 2, 2)]),
    )

    assert cli.main([str(photo), "--backend", "fake"]) == 1
    assert not photo.with_name("photo_cutout.png").exists()


def test_build_config_applies_overrides():
    args = cli.build_parser().parse_args([
        "x.png", "--blur-radius", "3", "--epsilon", "0", "--workers", "2",
        "--model", "org/other", "--device", "cpu",
    ])

    config = cli.build_config(args, {"feathering": {"gamma": 2.5}})

    assert config.feathering.blur_radius == 3.0
    assert config.feathering.gamma == 2.5
    assert config.feathering.alpha_epsilon == 0
    assert config.workers == 2
    assert config.model.model_id == "org/other"
    assert config.model.device == "cpu"


def test_default_output_path(tmp_path):
    assert cli.default_output_path(tmp_path / "a.jpg") == tmp_path / "a_cutout.png"


@pytest.mark.parametrize("settings", [
    "feathering:\n  gamma: steep\n",
    "pipeline:\n  workers: two\n",
    "logging:\n  level: loud\n",
    "logging: verbose\n",
    "feathering: [unclosed\n",
])
def test_bad_settings_file_exit_code(photo, tmp_path, fake_backend, settings):
    config_path = tmp_path / "settings.yaml"
    config_path.write_text(settings)

    assert cli.main([str(photo), "--config", str(config_path), "--backend", "fake"]) == 2
    assert fake_backend == []


def test_lowercase_log_level_in_settings(photo, tmp_path, fake_backend):
    config_path = tmp_path / "settings.yaml"
    config_path.write_text("logging:\n  level: info\n")

    assert cli.main([str(photo), "--config", str(config_path), "--backend", "fake"]) == 0
