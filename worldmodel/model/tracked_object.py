# worldmodel/model/tracked_object.py

import numpy as np
from typing import Dict, List, Optional, Union

from worldmodel.model.state import ObjectState, parse_state

ArrayLike = Union[np.ndarray, List[float]]


class Header:
    """Frame and timestamp of an observation."""

    def __init__(self, frame_id: str = '', stamp: float = 0.0):
        self.frame_id = frame_id or ''
        self.stamp = float(stamp or 0.0)

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> 'Header':
        data = data or {}
        return cls(data.get('frame_id', ''), data.get('stamp', 0.0))

    def to_dict(self) -> Dict:
        return {'frame_id': self.frame_id, 'stamp': self.stamp}

    def copy(self) -> 'Header':
        return Header(self.frame_id, self.stamp)

    def __eq__(self, other):
        if not isinstance(other, Header):
            return NotImplemented
        return self.frame_id == other.frame_id and self.stamp == other.stamp

    def __repr__(self):
        return f"Header(frame_id={self.frame_id!r}, stamp={self.stamp:.3f})"


def to_covariance(value: Optional[ArrayLike]) -> np.ndarray:
    """
    Extract a 3x3 position covariance from several message layouts.

    Args:
        value: 3x3 or 6x6 matrix, or a flat list of 9 or 36 values. For 6x6
            pose covariances only the upper-left position block is used.
            None gives a zero matrix.

    Returns:
        3x3 covariance matrix
    """
    if value is None:
        return np.zeros((3, 3))

    matrix = np.asarray(value, dtype=float)
    if matrix.size == 36:
        matrix = matrix.reshape(6, 6)[:3, :3]
    elif matrix.size == 9:
        matrix = matrix.reshape(3, 3)
    else:
        raise ValueError(f"Covariance must have 9 or 36 elements, got {matrix.size}")

    return matrix.copy()


def validate_covariance(value: ArrayLike) -> np.ndarray:
    """
    Check that a value is a finite, symmetric positive semi-definite 3x3 matrix.

    Args:
        value: Covariance matrix

    Returns:
        The symmetrised matrix

    Raises:
        ValueError: If the matrix has the wrong shape, non-finite entries or
            negative eigenvalues
    """
    matrix = np.asarray(value, dtype=float)
    if matrix.shape != (3, 3):
        raise ValueError(f"Covariance must be 3x3, got shape {matrix.shape}")
    if not np.all(np.isfinite(matrix)):
        raise ValueError("Covariance contains non-finite values")

    matrix = 0.5 * (matrix + matrix.T)
    tolerance = 1e-9 * max(1.0, float(np.abs(matrix).max()))
    if np.linalg.eigvalsh(matrix).min() < -tolerance:
        raise ValueError("Covariance is not positive semi-definite")
    return matrix


class TrackedObject:
    """
    Persistent estimate of a physical object.

    Position, orientation and covariance are expressed in the canonical frame
    of the model. Support accumulates the evidence of all fused percepts and
    verification votes; it may become negative.
    """

    def __init__(self, class_id: str = '', object_id: str = ''):
        self._object_id = object_id
        self.class_id = class_id or ''
        self.position = np.zeros(3)
        self.orientation = np.array([0.0, 0.0, 0.0, 1.0])
        self._covariance = np.zeros((3, 3))
        self.support = 0.0
        self.state = ObjectState.ACTIVE
        self.header = Header()

    @property
    def object_id(self) -> str:
        return self._object_id

    @property
    def covariance(self) -> np.ndarray:
        return self._covariance

    @covariance.setter
    def covariance(self, value: ArrayLike) -> None:
        self._covariance = validate_covariance(value)

    def set_position(self, position: ArrayLike) -> None:
        position = np.asarray(position, dtype=float).reshape(-1)
        if position.shape != (3,):
            raise ValueError(f"Position must have 3 elements, got {position.shape[0]}")
        self.position = position.copy()

    def set_orientation(self, orientation: Optional[ArrayLike]) -> None:
        """Set the orientation quaternion [x, y, z, w]; None resets to identity."""
        if orientation is None:
            self.orientation = np.array([0.0, 0.0, 0.0, 1.0])
            return

        quaternion = np.asarray(orientation, dtype=float).reshape(-1)
        if quaternion.shape != (4,):
            raise ValueError(f"Orientation must have 4 elements, got {quaternion.shape[0]}")

        norm = np.linalg.norm(quaternion)
        if norm < 1e-9:
            self.orientation = np.array([0.0, 0.0, 0.0, 1.0])
        else:
            self.orientation = quaternion / norm

    def set_state(self, state: Union[ObjectState, int, str]) -> None:
        self.state = parse_state(state)

    def add_support(self, support: float) -> None:
        self.support += float(support)

    def is_fixed(self) -> bool:
        return self.state.is_fixed

    def to_message(self) -> Dict:
        """
        Public representation of this object as published to consumers.

        Returns:
            Dictionary with header, info, pose, covariance and state entries
        """
        return {
            'header': self.header.to_dict(),
            'info': {
                'class_id': self.class_id,
                'object_id': self.object_id,
                'support': float(self.support),
            },
            'pose': {
                'position': [float(v) for v in self.position],
                'orientation': [float(v) for v in self.orientation],
            },
            'covariance': self._covariance.tolist(),
            'state': int(self.state),
        }

    def __repr__(self):
        x, y, z = self.position
        return (f"TrackedObject(object_id={self.object_id!r}, class_id={self.class_id!r}, "
                f"position=({x:.2f}, {y:.2f}, {z:.2f}), support={self.support:.2f}, "
                f"state={self.state.name})")
