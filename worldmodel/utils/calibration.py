# worldmodel/utils/calibration.py

import threading
import logging
import numpy as np
import cv2
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class PinholeCameraModel:
    """
    Pinhole camera model built from a camera info dictionary.

    Camera info keys follow the usual calibration layout:
        - K: 3x3 intrinsic matrix (flat list of 9 or nested)
        - D: distortion coefficients (optional)
        - P: 3x4 projection matrix of the rectified image (optional)
        - width, height: image resolution (optional)
    """

    def __init__(self,
                 camera_matrix: np.ndarray,
                 dist_coeffs: Optional[np.ndarray] = None,
                 projection_matrix: Optional[np.ndarray] = None,
                 resolution: Tuple[int, int] = (0, 0)):
        self.camera_matrix = np.asarray(camera_matrix, dtype=float).reshape(3, 3)
        self.dist_coeffs = None
        if dist_coeffs is not None and len(dist_coeffs) > 0:
            self.dist_coeffs = np.asarray(dist_coeffs, dtype=float).reshape(-1)
        self.projection_matrix = None
        if projection_matrix is not None and len(np.asarray(projection_matrix).reshape(-1)) == 12:
            self.projection_matrix = np.asarray(projection_matrix, dtype=float).reshape(3, 4)
        self.resolution = resolution

    @classmethod
    def from_camera_info(cls, camera_info: Dict) -> 'PinholeCameraModel':
        if 'K' not in camera_info:
            raise ValueError("Camera info without intrinsic matrix K")
        return cls(
            camera_matrix=camera_info['K'],
            dist_coeffs=camera_info.get('D'),
            projection_matrix=camera_info.get('P'),
            resolution=(int(camera_info.get('width', 0)), int(camera_info.get('height', 0)))
        )

    def _rectified_intrinsics(self) -> Tuple[float, float, float, float]:
        matrix = self.projection_matrix if self.projection_matrix is not None else self.camera_matrix
        return matrix[0, 0], matrix[1, 1], matrix[0, 2], matrix[1, 2]

    def project_pixel_to_ray(self, u: float, v: float) -> np.ndarray:
        """
        Compute the unit ray through a pixel in the optical frame.

        Pixel coordinates are taken as rectified when a projection matrix is
        known; otherwise lens distortion is removed with the distortion
        coefficients (if any).

        Args:
            u: Pixel column
            v: Pixel row

        Returns:
            Unit direction [x, y, z] with z along the optical axis, x right, y down
        """
        if self.projection_matrix is None and self.dist_coeffs is not None and np.any(self.dist_coeffs):
            pixel = np.array([[[u, v]]], dtype=np.float64)
            normalized = cv2.undistortPoints(pixel, self.camera_matrix, self.dist_coeffs)
            dir_x, dir_y = normalized[0, 0]
        else:
            fx, fy, cx, cy = self._rectified_intrinsics()
            dir_x = (u - cx) / fx
            dir_y = (v - cy) / fy

        direction = np.array([dir_x, dir_y, 1.0], dtype=float)
        return direction / np.linalg.norm(direction)

    def get_camera_info(self) -> Dict:
        fx, fy, cx, cy = self._rectified_intrinsics()
        return {
            'focal_length': (fx, fy),
            'principal_point': (cx, cy),
            'distortion_coeffs': [] if self.dist_coeffs is None else self.dist_coeffs.tolist(),
            'resolution': self.resolution
        }


class CameraModelCache:
    """
    Camera models keyed by frame id, created from the first camera info seen
    for each frame. Entries are never evicted.
    """

    def __init__(self):
        self._models: Dict[str, PinholeCameraModel] = {}
        self._lock = threading.Lock()

    def get(self, frame_id: str, camera_info: Dict) -> PinholeCameraModel:
        with self._lock:
            model = self._models.get(frame_id)
            if model is None:
                model = PinholeCameraModel.from_camera_info(camera_info)
                self._models[frame_id] = model
                logger.info(f"Created camera model for frame {frame_id}: {model.get_camera_info()}")
            return model

    def __len__(self) -> int:
        with self._lock:
            return len(self._models)

    def __contains__(self, frame_id: str) -> bool:
        with self._lock:
            return frame_id in self._models
