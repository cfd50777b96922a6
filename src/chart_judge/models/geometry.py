from dataclasses import dataclass
from typing import Any

import cv2
import numpy as np
from numpy.typing import NDArray


@dataclass(frozen=True)
class LoadedImage:
    """Decoded BGR uint8 pixels. The array is flagged read-only."""

    path: str
    pixels: NDArray[np.uint8]

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def channels(self) -> int:
        return 1 if self.pixels.ndim == 2 else int(self.pixels.shape[2])


@dataclass(frozen=True)
class ChartInstance:
    """A detected chart: homography from normalized chart space to image pixels."""

    homography: NDArray[Any]  # 3x3, float64
    confidence: float
    residual: float  # RMS reprojection error in pitch units
    area: float  # projected chart area in px^2
    fiducial_count: int
    match_strength: float

    def project(self, points: NDArray[Any]) -> NDArray[np.float64]:
        """Map (N, 2) normalized chart coordinates to (N, 2) pixel coordinates."""
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 1, 2)
        return cv2.perspectiveTransform(pts, self.homography).reshape(-1, 2)

    def outline(self) -> NDArray[np.float64]:
        return self.project(np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]]))
