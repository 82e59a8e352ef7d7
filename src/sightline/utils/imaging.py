"""Image processing utilities for sightline.

Shared image encoding and conversion functions used by the inference
providers and the observation endpoint.
"""

from __future__ import annotations

import base64
import io
import logging

import cv2
import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)


def numpy_to_base64_png(image: np.ndarray) -> str:
    """Convert a numpy image array (BGR, OpenCV format) to base64 PNG."""
    success, buffer = cv2.imencode(".png", image)
    if not success:
        raise ValueError("Failed to encode image to PNG")
    return base64.b64encode(buffer.tobytes()).decode("utf-8")


def numpy_to_pil(image: np.ndarray) -> Image.Image:
    """Convert a numpy image array (BGR) to a PIL Image (RGB)."""
    rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
    return Image.fromarray(rgb)


def encode_thumbnail(image: np.ndarray, max_size: int = 320, quality: int = 70) -> str:
    """Encode a downscaled JPEG preview of a BGR image as base64.

    Used to ship the most recent capture to an out-of-process view
    without sending the full-resolution frame.
    """
    pil = numpy_to_pil(image)
    pil.thumbnail((max_size, max_size))
    buffer = io.BytesIO()
    pil.save(buffer, format="JPEG", quality=quality)
    return base64.b64encode(buffer.getvalue()).decode("utf-8")


def resize_for_mllm(
    image: np.ndarray,
    max_dimension: int = 1568,
    min_dimension: int = 512,
) -> np.ndarray:
    """Resize an image for multimodal model input.

    Preserves aspect ratio. Downscales large screenshots and upscales
    tiny windows so their text is readable by the vision model.
    """
    h, w = image.shape[:2]
    largest = max(h, w)

    if largest > max_dimension:
        scale = max_dimension / largest
        return cv2.resize(image, (int(w * scale), int(h * scale)), interpolation=cv2.INTER_AREA)
    elif largest < min_dimension:
        scale = min_dimension / largest
        return cv2.resize(image, (int(w * scale), int(h * scale)), interpolation=cv2.INTER_CUBIC)

    return image
