"""
OpenCV utility functions for the chart judgment pipeline.

This module provides image I/O with validation. All functions follow
the Result | ProcessingError pattern for error handling.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, TypeAlias

import cv2
import numpy as np
from numpy.typing import NDArray

from chart_judge import config
from chart_judge.models.geometry import LoadedImage
from chart_judge.models.judgment import ErrorKind, ProcessingError, ProcessingStage

# Use Any for dtype to avoid MatLike compatibility issues with OpenCV
Image: TypeAlias = NDArray[Any]  # BGR image
GrayImage: TypeAlias = NDArray[Any]


# =============================================================================
# SECTION 1: IMAGE I/O
# =============================================================================


def _decode_error(path: Path, error_type: str, message: str, **details: Any) -> ProcessingError:
    return ProcessingError(
        stage=ProcessingStage.LOAD,
        kind=ErrorKind.DECODE_ERROR,
        error_type=error_type,
        recoverable=False,
        message=message,
        details={"path": str(path), **details},
    )


def load_image(path: str | Path) -> LoadedImage | ProcessingError:
    """
    Load an image from disk with validation.

    Handles:
    - Missing files (error_type "file_not_found")
    - Unsupported extensions (error_type "unsupported_format")
    - Corrupted or truncated data (error_type "corrupt_image")
    - Grayscale / alpha images (converted to 3-channel BGR)

    The returned pixel buffer is read-only; decoding either fully
    succeeds or yields a ProcessingError.
    """
    path = Path(path)

    if not path.is_file():
        return _decode_error(path, "file_not_found", f"Image file not found: {path}")

    if path.suffix.lower() not in config.SUPPORTED_INPUT_FORMATS:
        return _decode_error(
            path,
            "unsupported_format",
            f"Unsupported image format '{path.suffix}': {path}",
            supported=list(config.SUPPORTED_INPUT_FORMATS),
        )

    try:
        # imread cannot open non-ASCII paths on some platforms; decode from bytes instead
        data = np.fromfile(str(path), dtype=np.uint8)
        img = cv2.imdecode(data, cv2.IMREAD_UNCHANGED) if data.size else None
    except PermissionError:
        return _decode_error(path, "permission_denied", f"Permission denied reading: {path}")
    except (OSError, cv2.error) as e:
        return _decode_error(path, "corrupt_image", f"Error reading image: {e}", error=str(e))

    if img is None:
        return _decode_error(path, "corrupt_image", f"Failed to decode image (may be corrupted): {path}")

    if img.dtype == np.uint16:
        # 16-bit PNG/TIFF
        img = (img // 257).astype(np.uint8)
    elif img.dtype != np.uint8:
        img = np.clip(img.astype(np.float64) * 255.0, 0, 255).astype(np.uint8)

    if img.ndim == 2:
        img = cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)
    elif img.ndim == 3:
        channels = img.shape[2]
        if channels == 1:
            img = cv2.cvtColor(img[:, :, 0], cv2.COLOR_GRAY2BGR)
        elif channels == 4:
            img = cv2.cvtColor(img, cv2.COLOR_BGRA2BGR)

    if img.ndim != 3 or img.shape[2] != 3 or img.shape[0] == 0 or img.shape[1] == 0:
        return _decode_error(path, "corrupt_image", f"Decoded image has unusable shape {img.shape}: {path}")

    pixels = np.ascontiguousarray(img)
    pixels.setflags(write=False)
    return LoadedImage(path=str(path), pixels=pixels)


def save_image(image: Image, path: str | Path) -> Path | ProcessingError:
    """
    Save an image to disk, creating parent directories as needed.

    Returns:
        Path to saved file or ProcessingError (kind write_error)
    """
    path = Path(path)

    def _write_error(error_type: str, message: str, **details: Any) -> ProcessingError:
        return ProcessingError(
            stage=ProcessingStage.WRITE,
            kind=ErrorKind.WRITE_ERROR,
            error_type=error_type,
            recoverable=True,
            message=message,
            details={"path": str(path), **details},
        )

    if path.suffix.lower() not in config.SUPPORTED_OUTPUT_FORMATS:
        return _write_error(
            "unsupported_format",
            f"Unsupported output format '{path.suffix}': {path}",
            supported=list(config.SUPPORTED_OUTPUT_FORMATS),
        )

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        ok, encoded = cv2.imencode(path.suffix.lower(), image)
        if not ok:
            return _write_error("imencode_failed", f"Failed to encode image: {path}")
        encoded.tofile(str(path))
        return path

    except PermissionError:
        return _write_error("permission_denied", f"Permission denied writing: {path}")
    except (OSError, cv2.error) as e:
        return _write_error("io_error", f"Error writing image: {e}", error=str(e))


def to_grayscale(image: Image) -> GrayImage:
    if image.ndim == 2:
        return image
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


def odd_block_size(length: float) -> int:
    size = max(3, int(round(length)))
    return size if size % 2 == 1 else size + 1
