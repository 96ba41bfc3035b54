# worldmodel/utils/transforms.py

import logging
import threading
import time
from abc import ABC, abstractmethod
from collections import deque
from typing import Dict, List, Optional, Tuple, Union

import numpy as np
from scipy.spatial.transform import Rotation

logger = logging.getLogger(__name__)


class TransformError(Exception):
    """Raised when a transform between two frames is not available."""


def transform_points(points: np.ndarray, transform_matrix: np.ndarray) -> np.ndarray:
    """
    Transform points using a transformation matrix.

    Args:
        points: Points as Nx3 array
        transform_matrix: 4x4 transformation matrix

    Returns:
        Transformed points as Nx3 array
    """
    # Convert to homogeneous coordinates
    points_homogeneous = np.ones((len(points), 4))
    points_homogeneous[:, :3] = points

    # Apply transformation
    transformed_points = np.dot(points_homogeneous, transform_matrix.T)[:, :3]

    return transformed_points


def rotate_covariance(covariance: np.ndarray, rotation: Union[np.ndarray, Rotation]) -> np.ndarray:
    """
    Express a covariance matrix in a rotated frame (R * C * R^T).

    Args:
        covariance: 3x3 covariance matrix
        rotation: 3x3 rotation matrix or scipy Rotation

    Returns:
        Rotated 3x3 covariance matrix
    """
    if isinstance(rotation, Rotation):
        rotation = rotation.as_matrix()
    rotated = rotation @ np.asarray(covariance, dtype=float) @ rotation.T
    return 0.5 * (rotated + rotated.T)


def bearing_rotation(direction: np.ndarray) -> Rotation:
    """
    Rotation that aligns the x axis with the bearing to a point.

    Yaw follows the horizontal bearing, pitch the vertical bearing and roll
    is zero. A zero vector gives the identity rotation.

    Args:
        direction: Point or direction [x, y, z] in the sensor frame (x forward, z up)

    Returns:
        scipy Rotation
    """
    x, y, z = np.asarray(direction, dtype=float).reshape(3)
    yaw = np.arctan2(y, x)
    pitch = np.arctan2(-z, np.hypot(x, y))
    return Rotation.from_euler('ZYX', [yaw, pitch, 0.0])


class RigidTransform:
    """
    Rotation followed by a translation, mapping source frame coordinates
    into target frame coordinates.
    """

    def __init__(self,
                 rotation: Optional[Rotation] = None,
                 translation: Optional[Union[np.ndarray, List[float]]] = None):
        self.rotation = rotation if rotation is not None else Rotation.identity()
        self.translation = np.zeros(3) if translation is None else np.asarray(translation, dtype=float).reshape(3)

    @classmethod
    def identity(cls) -> 'RigidTransform':
        return cls()

    @classmethod
    def from_quaternion(cls,
                        translation: Union[np.ndarray, List[float]],
                        quaternion: Union[np.ndarray, List[float]]) -> 'RigidTransform':
        """Create a transform from a translation and a quaternion [x, y, z, w]."""
        return cls(Rotation.from_quat(quaternion), translation)

    @classmethod
    def from_matrix(cls, matrix: np.ndarray) -> 'RigidTransform':
        matrix = np.asarray(matrix, dtype=float)
        if matrix.shape != (4, 4):
            raise ValueError(f"Transformation matrix must be 4x4, got {matrix.shape}")
        return cls(Rotation.from_matrix(matrix[:3, :3]), matrix[:3, 3])

    @classmethod
    def from_dict(cls, data: Dict) -> 'RigidTransform':
        """Create a transform from {'translation': [...], 'rotation': [x, y, z, w]} or {'rpy': [...]}."""
        translation = data.get('translation', [0.0, 0.0, 0.0])
        if 'rpy' in data:
            roll, pitch, yaw = data['rpy']
            return cls(Rotation.from_euler('ZYX', [yaw, pitch, roll]), translation)
        return cls.from_quaternion(translation, data.get('rotation', [0.0, 0.0, 0.0, 1.0]))

    def as_matrix(self) -> np.ndarray:
        matrix = np.eye(4)
        matrix[:3, :3] = self.rotation.as_matrix()
        matrix[:3, 3] = self.translation
        return matrix

    def apply(self, points: Union[np.ndarray, List[float]]) -> np.ndarray:
        """Transform a single point [x, y, z] or an Nx3 array of points."""
        points = np.asarray(points, dtype=float)
        if points.ndim == 1:
            return transform_points(points.reshape(1, 3), self.as_matrix())[0]
        return transform_points(points, self.as_matrix())

    def rotate_orientation(self, quaternion: Union[np.ndarray, List[float]]) -> np.ndarray:
        """Express an orientation quaternion [x, y, z, w] in the target frame."""
        return (self.rotation * Rotation.from_quat(quaternion)).as_quat()

    def rotate_covariance(self, covariance: np.ndarray) -> np.ndarray:
        return rotate_covariance(covariance, self.rotation)

    def inverse(self) -> 'RigidTransform':
        inverse_rotation = self.rotation.inv()
        return RigidTransform(inverse_rotation, -inverse_rotation.apply(self.translation))

    def __mul__(self, other: 'RigidTransform') -> 'RigidTransform':
        if not isinstance(other, RigidTransform):
            return NotImplemented
        return RigidTransform(self.rotation * other.rotation,
                              self.rotation.apply(other.translation) + self.translation)

    def __repr__(self):
        x, y, z = self.translation
        return f"RigidTransform(translation=({x:.3f}, {y:.3f}, {z:.3f}), rotation={self.rotation.as_quat().round(4).tolist()})"


class TransformGateway(ABC):
    """
    Abstract source of transforms between coordinate frames.
    """

    @abstractmethod
    def lookup_transform(self,
                         target_frame: str,
                         source_frame: str,
                         stamp: float = 0.0,
                         timeout: float = 0.0) -> RigidTransform:
        """
        Look up the transform from source_frame to target_frame.

        Args:
            target_frame: Frame the result maps into
            source_frame: Frame the result maps from
            stamp: Time of the requested transform (seconds)
            timeout: Maximum time to wait for the transform (seconds)

        Returns:
            RigidTransform mapping source coordinates to target coordinates

        Raises:
            TransformError: If the transform is not available in time
        """
        pass


class StaticTransformBuffer(TransformGateway):
    """
    In-process transform gateway holding time-independent transforms.

    Transforms are registered per (parent, child) edge and looked up through
    the frame graph in either direction. Lookups of a transform that is not
    (yet) connected wait up to the given timeout for it to be registered.
    """

    def __init__(self):
        # (parent, child) -> transform mapping child coordinates into parent
        self._edges: Dict[Tuple[str, str], RigidTransform] = {}
        self._condition = threading.Condition()

    def set_transform(self, parent_frame: str, child_frame: str, transform: RigidTransform) -> None:
        if not parent_frame or not child_frame:
            raise ValueError("Frame ids must not be empty")
        with self._condition:
            self._edges[(parent_frame, child_frame)] = transform
            self._condition.notify_all()

    def frames(self) -> List[str]:
        with self._condition:
            frames = set()
            for parent, child in self._edges:
                frames.add(parent)
                frames.add(child)
            return sorted(frames)

    def _find(self, target_frame: str, source_frame: str) -> Optional[RigidTransform]:
        if target_frame == source_frame:
            return RigidTransform.identity()

        neighbours: Dict[str, List[Tuple[str, RigidTransform]]] = {}
        for (parent, child), transform in self._edges.items():
            neighbours.setdefault(child, []).append((parent, transform))
            neighbours.setdefault(parent, []).append((child, transform.inverse()))

        # breadth-first search; each entry maps source coordinates into the frame
        visited = {source_frame}
        queue = deque([(source_frame, RigidTransform.identity())])
        while queue:
            frame, to_frame = queue.popleft()
            for neighbour, step in neighbours.get(frame, []):
                if neighbour in visited:
                    continue
                to_neighbour = step * to_frame
                if neighbour == target_frame:
                    return to_neighbour
                visited.add(neighbour)
                queue.append((neighbour, to_neighbour))

        return None

    def can_transform(self, target_frame: str, source_frame: str) -> bool:
        with self._condition:
            return self._find(target_frame, source_frame) is not None

    def lookup_transform(self,
                         target_frame: str,
                         source_frame: str,
                         stamp: float = 0.0,
                         timeout: float = 0.0) -> RigidTransform:
        if not target_frame or not source_frame:
            raise TransformError(f"Invalid frame ids: '{target_frame}' <- '{source_frame}'")

        deadline = time.monotonic() + max(timeout, 0.0)
        with self._condition:
            while True:
                transform = self._find(target_frame, source_frame)
                if transform is not None:
                    return transform

                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TransformError(
                        f"Lookup would require extrapolation or frames are not connected: "
                        f"'{target_frame}' <- '{source_frame}' at time {stamp:.3f}")
                self._condition.wait(remaining)
