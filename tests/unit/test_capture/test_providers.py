"""Tests for the CaptureProvider base class and concrete providers."""

from __future__ import annotations

import asyncio
import threading
from unittest.mock import MagicMock, patch

import cv2
import numpy as np
import pytest

from sightline.capture.base import CaptureProvider
from sightline.capture.simulated import DEFAULT_SOURCES, SimulatedCaptureProvider
from sightline.domain.errors import CaptureError, SourceNotFoundError
from sightline.domain.models import WindowSource


class TestCaptureProviderInterface:
    def test_cannot_instantiate_abstract_class(self) -> None:
        with pytest.raises(TypeError):
            CaptureProvider()  # type: ignore[abstract]

    @pytest.mark.asyncio
    async def test_context_manager_opens_and_closes(self) -> None:
        provider = SimulatedCaptureProvider()
        async with provider as opened:
            assert opened is provider
            assert provider.is_open
        assert not provider.is_open


class TestSimulatedCaptureProvider:
    @pytest.mark.asyncio
    async def test_lists_default_sources(self) -> None:
        provider = SimulatedCaptureProvider()
        assert await provider.list_sources() == list(DEFAULT_SOURCES)

    @pytest.mark.asyncio
    async def test_capture_numbers_frames_per_source(self) -> None:
        provider = SimulatedCaptureProvider(frame_size=(64, 48), seed=1)
        first = await provider.capture(1)
        second = await provider.capture(1)
        other = await provider.capture(2)

        assert first.image.shape == (48, 64, 3)
        assert first.image.dtype == np.uint8
        assert (first.frame_number, second.frame_number, other.frame_number) == (1, 2, 1)
        assert first.source_id == 1

    @pytest.mark.asyncio
    async def test_removed_source_is_not_found(self) -> None:
        provider = SimulatedCaptureProvider()
        provider.remove_source(1)

        with pytest.raises(SourceNotFoundError) as info:
            await provider.capture(1)
        assert info.value.source_id == 1
        assert info.value.provider == "simulated"
        assert 1 not in {s.id for s in await provider.list_sources()}

    @pytest.mark.asyncio
    async def test_added_source_can_be_captured(self) -> None:
        provider = SimulatedCaptureProvider(sources=[])
        provider.add_source(WindowSource(id=5, name="New", owner_name="App"))
        image = await provider.capture(5)
        assert image.source_id == 5

    @pytest.mark.asyncio
    async def test_concurrent_captures_for_different_sources(self) -> None:
        provider = SimulatedCaptureProvider(delay=0.01)
        images = await asyncio.gather(*(provider.capture(s.id) for s in DEFAULT_SOURCES))
        assert [i.source_id for i in images] == [s.id for s in DEFAULT_SOURCES]


class TestMonitorCaptureProvider:
    @pytest.fixture
    def fake_mss(self) -> MagicMock:
        sct = MagicMock()
        sct.monitors = [
            {"left": 0, "top": 0, "width": 3840, "height": 1080},
            {"left": 0, "top": 0, "width": 1920, "height": 1080},
            {"left": 1920, "top": 0, "width": 1920, "height": 1080},
        ]
        sct.grab.return_value = np.zeros((4, 6, 4), dtype=np.uint8)
        sct.__enter__.return_value = sct
        return sct

    @pytest.mark.asyncio
    async def test_lists_physical_displays(self, fake_mss: MagicMock) -> None:
        from sightline.capture.monitor import MonitorCaptureProvider

        with patch("sightline.capture.monitor.mss.mss", return_value=fake_mss):
            sources = await MonitorCaptureProvider().list_sources()

        assert [s.id for s in sources] == [1, 2]
        assert sources[0].name == "Display 1 (1920x1080)"

    @pytest.mark.asyncio
    async def test_capture_converts_to_bgr(self, fake_mss: MagicMock) -> None:
        from sightline.capture.monitor import MonitorCaptureProvider

        with patch("sightline.capture.monitor.mss.mss", return_value=fake_mss):
            image = await MonitorCaptureProvider().capture(2)

        assert image.image.shape == (4, 6, 3)
        assert image.source_id == 2
        assert image.frame_number == 1

    @pytest.mark.asyncio
    async def test_unknown_display_is_not_found(self, fake_mss: MagicMock) -> None:
        from sightline.capture.monitor import MonitorCaptureProvider

        with patch("sightline.capture.monitor.mss.mss", return_value=fake_mss):
            with pytest.raises(SourceNotFoundError):
                await MonitorCaptureProvider().capture(5)


class TestWebcamCaptureProvider:
    @pytest.mark.asyncio
    async def test_failed_read_is_transient(self) -> None:
        from sightline.capture.webcam import WebcamCaptureProvider

        cap = MagicMock()
        cap.isOpened.return_value = True
        cap.read.return_value = (False, None)
        cap.get.return_value = 640
        with patch("sightline.capture.webcam.cv2.VideoCapture", return_value=cap):
            provider = WebcamCaptureProvider(max_devices=2)
            with pytest.raises(CaptureError):
                await provider.capture(0)
        cap.release.assert_called()

    @pytest.mark.asyncio
    async def test_device_out_of_range_is_not_found(self) -> None:
        from sightline.capture.webcam import WebcamCaptureProvider

        provider = WebcamCaptureProvider(max_devices=2)
        with pytest.raises(SourceNotFoundError):
            await provider.capture(7)

    @pytest.mark.asyncio
    async def test_capture_returns_frame(self) -> None:
        from sightline.capture.webcam import WebcamCaptureProvider

        cap = MagicMock()
        cap.isOpened.return_value = True
        cap.read.return_value = (True, np.zeros((8, 8, 3), dtype=np.uint8))
        cap.get.return_value = 8
        with patch("sightline.capture.webcam.cv2.VideoCapture", return_value=cap):
            provider = WebcamCaptureProvider(max_devices=2)
            image = await provider.capture(1)
            await provider.close()

        assert image.source_id == 1
        assert image.image.shape == (8, 8, 3)

    @pytest.mark.asyncio
    async def test_close_waits_for_in_flight_read(self) -> None:
        from sightline.capture.webcam import WebcamCaptureProvider

        read_started = threading.Event()
        unblock = threading.Event()

        def blocking_read() -> tuple[bool, np.ndarray]:
            read_started.set()
            unblock.wait(timeout=2.0)
            return True, np.zeros((8, 8, 3), dtype=np.uint8)

        cap = MagicMock()
        cap.isOpened.return_value = True
        cap.read.side_effect = blocking_read
        cap.get.return_value = 8
        with patch("sightline.capture.webcam.cv2.VideoCapture", return_value=cap) as video_capture:
            provider = WebcamCaptureProvider(max_devices=2)
            capturing = asyncio.create_task(provider.capture(0))
            loop = asyncio.get_running_loop()
            assert await loop.run_in_executor(None, read_started.wait, 2.0)

            closing = asyncio.create_task(provider.close())
            await asyncio.sleep(0.05)
            cap.release.assert_not_called()

            unblock.set()
            image = await capturing
            await closing
            cap.release.assert_called_once()

            # A closed provider does not reopen the device
            with pytest.raises(CaptureError):
                await provider.capture(0)
            assert video_capture.call_count == 1

        assert image.source_id == 0
        assert not provider.is_open

    @pytest.mark.asyncio
    async def test_opencv_read_error_becomes_capture_error(self) -> None:
        from sightline.capture.webcam import WebcamCaptureProvider

        cap = MagicMock()
        cap.isOpened.return_value = True
        cap.read.side_effect = cv2.error("device lost")
        cap.get.return_value = 8
        with patch("sightline.capture.webcam.cv2.VideoCapture", return_value=cap):
            with pytest.raises(CaptureError):
                await WebcamCaptureProvider(max_devices=1).capture(0)
        cap.release.assert_called()

    @pytest.mark.asyncio
    async def test_opencv_error_while_listing_becomes_capture_error(self) -> None:
        from sightline.capture.webcam import WebcamCaptureProvider

        with patch(
            "sightline.capture.webcam.cv2.VideoCapture", side_effect=cv2.error("backend failure")
        ):
            with pytest.raises(CaptureError):
                await WebcamCaptureProvider(max_devices=1).list_sources()
