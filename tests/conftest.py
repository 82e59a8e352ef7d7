"""Shared test fixtures for the sightline test suite.

Provides common fixtures used across unit tests: sample sources and
images, recording provider fakes, and event buses.
"""

from __future__ import annotations

from datetime import datetime

import numpy as np
import pytest

from fakes import RecordingCaptureProvider, RecordingInferenceProvider
from sightline.domain.models import CapturedImage, WindowSource
from sightline.events import EventBus


# ---------------------------------------------------------------------------
# Source / Image Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def editor_source() -> WindowSource:
    return WindowSource(id=1, name="Editor", owner_name="IDE")


@pytest.fixture
def browser_source() -> WindowSource:
    return WindowSource(id=2, name="Docs", owner_name="Browser")


@pytest.fixture
def sample_image() -> np.ndarray:
    """A minimal 100x100 black image for testing."""
    return np.zeros((100, 100, 3), dtype=np.uint8)


@pytest.fixture
def sample_capture(sample_image: np.ndarray) -> CapturedImage:
    return CapturedImage(
        image=sample_image,
        source_id=1,
        timestamp=datetime(2025, 1, 1, 12, 0, 0),
        frame_number=1,
    )


# ---------------------------------------------------------------------------
# Provider Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def capture_provider(
    editor_source: WindowSource, browser_source: WindowSource
) -> RecordingCaptureProvider:
    return RecordingCaptureProvider(sources=[editor_source, browser_source])


@pytest.fixture
def inference_provider() -> RecordingInferenceProvider:
    return RecordingInferenceProvider()


@pytest.fixture
def held_inference_provider() -> RecordingInferenceProvider:
    """An inference provider whose calls block until release() is called."""
    return RecordingInferenceProvider(hold=True)


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()
