"""
Photo capture after a completed liveness session.

Decodes the client's still image, checks it is a usable photo, and stores
it as a JPEG in the capture directory. The returned handle is the stored
file name; the image itself is never logged or echoed back.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import numpy as np
from PIL import Image, UnidentifiedImageError

from ..liveness.events import EventKind, LivenessEvent

logger = logging.getLogger(__name__)

JPEG_QUALITY = 80
MIN_IMAGE_SIDE = 64
CAPTURE_SUCCEEDED_MESSAGE = "Photo capture succeeded"


class CaptureError(ValueError):
    """Raised when a capture image cannot be used."""


@dataclass(frozen=True)
class CaptureResult:
    image_handle: str
    width: int
    height: int

    @property
    def event(self) -> LivenessEvent:
        return LivenessEvent(
            EventKind.CAPTURE_SUCCEEDED,
            CAPTURE_SUCCEEDED_MESSAGE,
            image_handle=self.image_handle,
        )


def decode_base64_image(base64_string: str) -> np.ndarray:
    """
    Decode a base64 image string to numpy array.

    Args:
        base64_string: Base64 encoded image (with or without data URL prefix)

    Returns:
        numpy array of the image in RGB format
    """
    if "," in base64_string:
        base64_string = base64_string.split(",", 1)[1]

    try:
        image_bytes = base64.b64decode(base64_string, validate=True)
        image = Image.open(io.BytesIO(image_bytes)).convert("RGB")
    except (binascii.Error, UnidentifiedImageError, OSError) as e:
        raise CaptureError("Failed to decode captured photo") from e

    return np.array(image)


def _capture_filename(now: datetime, directory: Path) -> Path:
    stem = now.strftime("%Y%m%d_%H%M%S")
    path = directory / f"{stem}.jpg"
    suffix = 1
    while path.exists():
        path = directory / f"{stem}_{suffix}.jpg"
        suffix += 1
    return path


def save_capture(base64_image: str, capture_dir: str | os.PathLike) -> CaptureResult:
    """
    Validate and store a captured photo.

    Raises:
        CaptureError: the image is undecodable, empty or too small
    """
    pixels = decode_base64_image(base64_image)

    height, width = pixels.shape[:2]
    if min(height, width) < MIN_IMAGE_SIDE:
        raise CaptureError(f"Captured photo is too small ({width}x{height})")
    if not pixels.any():
        raise CaptureError("Captured photo is blank")

    directory = Path(capture_dir)
    directory.mkdir(parents=True, exist_ok=True)
    path = _capture_filename(datetime.now(), directory)

    try:
        Image.fromarray(pixels).save(path, format="JPEG", quality=JPEG_QUALITY)
    except OSError as e:
        raise CaptureError("Failed to store captured photo") from e
    finally:
        # PRIVACY: drop pixel data as soon as it is written
        del pixels

    logger.info("Stored capture %s (%dx%d)", path.name, width, height)
    return CaptureResult(image_handle=path.name, width=width, height=height)


def capture_failed_event(message: str) -> LivenessEvent:
    return LivenessEvent(EventKind.CAPTURE_FAILED, message)
