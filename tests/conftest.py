"""Pytest configuration and shared fixtures for Tarot Scanner tests."""

import json
import shutil
import tempfile
from pathlib import Path

import cv2
import numpy as np
import pytest

from tarot_scanner.core.types import Card, Orientation
from tarot_scanner.store.captures import SqliteCaptureStore
from tarot_scanner.vision.signature import CropStrategy, crop_rect


def make_card_image(seed: int, width: int = 240, height: int = 360) -> np.ndarray:
    """Synthetic 2:3 card face: blocky random pattern unique per seed."""
    rng = np.random.default_rng(seed)
    blocks = rng.integers(0, 256, size=(12, 8, 3), dtype=np.uint8)
    return cv2.resize(blocks, (width, height), interpolation=cv2.INTER_NEAREST)


def encode_png(image: np.ndarray) -> bytes:
    ok, buffer = cv2.imencode(".png", image)
    assert ok
    return buffer.tobytes()


def frame_showing(card_image: np.ndarray, width: int = 600, height: int = 900) -> np.ndarray:
    """Camera-sized frame with the card filling the viewfinder region."""
    frame = np.full((height, width, 3), 40, dtype=np.uint8)
    x, y, w, h = crop_rect(width, height, CropStrategy.CENTERED_ROI)
    frame[y:y + h, x:x + w] = cv2.resize(card_image, (w, h), interpolation=cv2.INTER_AREA)
    return frame


def write_model_artifacts(
    directory: Path,
    labels=None,
    units=4,
    placeholder=False,
    model_format="layers-model",
    metadata_key="labels",
):
    """Write hand-built model.json/metadata.json documents, no weights."""
    directory.mkdir(parents=True, exist_ok=True)
    layers = [{"class_name": "Flatten", "config": {"name": "flatten"}}]
    if units is not None:
        layers.append({"class_name": "Dense", "config": {"name": "dense", "units": units}})
    model_json = {
        "format": model_format,
        "modelTopology": {"class_name": "Sequential", "config": {"name": "seq", "layers": layers}},
        "weightsManifest": [],
    }
    metadata = {"placeholder": placeholder}
    if labels is not None:
        metadata[metadata_key] = labels

    (directory / "model.json").write_text(json.dumps(model_json), encoding="utf-8")
    (directory / "metadata.json").write_text(json.dumps(metadata), encoding="utf-8")
    return directory / "model.json", directory / "metadata.json"


def biased_classifier(winner: int, classes: int = 4):
    """Bootstrap-shaped Keras classifier that always picks ``winner``."""
    from tarot_scanner.model.export import build_bootstrap_model

    model = build_bootstrap_model(classes)
    kernel, bias = model.get_weights()
    bias = bias.copy()
    bias[winner] = 5.0
    model.set_weights([kernel, bias])
    return model


@pytest.fixture(scope="function")
def temp_dirs():
    """Create temporary directories for each test function."""
    temp_dir = Path(tempfile.mkdtemp())
    model_dir = temp_dir / "model"
    capture_dir = temp_dir / "captures"
    model_dir.mkdir()
    capture_dir.mkdir()

    yield {
        'temp_dir': temp_dir,
        'model_dir': model_dir,
        'capture_dir': capture_dir
    }

    # Cleanup
    shutil.rmtree(temp_dir)


@pytest.fixture
def cards():
    """Two-card catalog (four classes)."""
    return [
        Card(id=0, name="O Louco", image_url="/cards/00_fool.svg"),
        Card(id=1, name="O Mago", image_url="/cards/01_magician.svg"),
    ]


@pytest.fixture
def card_images():
    return {0: make_card_image(100), 1: make_card_image(200)}


@pytest.fixture
def capture_store(temp_dirs):
    return SqliteCaptureStore(str(temp_dirs['capture_dir'] / "captures.db"))


@pytest.fixture
def fool_captures(capture_store, card_images):
    """Three upright and three reversed photos of card 0 only."""
    image = card_images[0]
    for i in range(3):
        shifted = np.clip(image.astype(np.int16) + i * 4, 0, 255).astype(np.uint8)
        capture_store.add_capture(0, Orientation.UPRIGHT, encode_png(shifted), captured_at=1000.0 + i)
        capture_store.add_capture(0, Orientation.REVERSED, encode_png(cv2.rotate(shifted, cv2.ROTATE_180)),
                                  captured_at=2000.0 + i)
    return capture_store


# Configure pytest options
def pytest_configure(config):
    """Configure pytest with custom options."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow running"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers automatically."""
    for item in items:
        # Mark integration tests
        if "integration" in item.name.lower() or "end_to_end" in item.name.lower():
            item.add_marker(pytest.mark.integration)

        # Mark slow tests
        if any(slow_indicator in item.name.lower() for slow_indicator in ['keras', 'tensorflow', 'bulk']):
            item.add_marker(pytest.mark.slow)

        # Mark unit tests (default)
        if not item.get_closest_marker('integration') and not item.get_closest_marker('slow'):
            item.add_marker(pytest.mark.unit)
