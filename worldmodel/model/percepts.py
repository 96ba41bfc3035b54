# worldmodel/model/percepts.py

import numpy as np
from typing import Dict, List, Optional, Union

from worldmodel.model.tracked_object import Header, to_covariance


class PerceptInfo:
    """Classification part of a percept."""

    def __init__(self,
                 class_id: str = '',
                 object_id: str = '',
                 class_support: float = 0.0,
                 object_support: float = 0.0):
        self.class_id = class_id or ''
        self.object_id = object_id or ''
        self.class_support = float(class_support)
        self.object_support = float(object_support)

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> 'PerceptInfo':
        data = data or {}
        return cls(
            class_id=data.get('class_id', ''),
            object_id=data.get('object_id', ''),
            class_support=data.get('class_support', 0.0),
            object_support=data.get('object_support', 0.0)
        )

    def support(self) -> float:
        """Support of the percept: object support for explicit ids, class support otherwise."""
        if self.object_id:
            return self.object_support
        return self.class_support

    def __repr__(self):
        return (f"PerceptInfo(class_id={self.class_id!r}, object_id={self.object_id!r}, "
                f"support={self.support():.2f})")


class PosePercept:
    """
    Observation of an object with a 3D position in the sensor frame.

    Covariance may be given as 3x3 or 6x6 matrix (or flat 9/36 list); only the
    position block is used. A missing or all-zero covariance is replaced by a
    range dependent default during ingestion.
    """

    def __init__(self,
                 header: Header,
                 info: PerceptInfo,
                 position: Union[np.ndarray, List[float]],
                 orientation: Optional[Union[np.ndarray, List[float]]] = None,
                 covariance: Optional[Union[np.ndarray, List[float]]] = None):
        self.header = header
        self.info = info
        self.position = np.asarray(position, dtype=float).reshape(3)
        self.orientation = None if orientation is None else np.asarray(orientation, dtype=float).reshape(4)
        self.covariance = to_covariance(covariance)

    @classmethod
    def from_dict(cls, data: Dict) -> 'PosePercept':
        pose = data.get('pose', {})
        return cls(
            header=Header.from_dict(data.get('header')),
            info=PerceptInfo.from_dict(data.get('info')),
            position=pose.get('position', [0.0, 0.0, 0.0]),
            orientation=pose.get('orientation'),
            covariance=data.get('covariance', pose.get('covariance'))
        )

    def __repr__(self):
        x, y, z = self.position
        return (f"PosePercept(frame_id={self.header.frame_id!r}, class_id={self.info.class_id!r}, "
                f"position=({x:.2f}, {y:.2f}, {z:.2f}))")


class ImagePercept:
    """
    Observation of an object as a bounding box in a camera image.

    The box is given by its top left corner (x, y) and its size in pixels;
    camera_info holds the calibration of the camera (see PinholeCameraModel).
    """

    def __init__(self,
                 header: Header,
                 info: PerceptInfo,
                 x: float,
                 y: float,
                 width: float = 0.0,
                 height: float = 0.0,
                 camera_info: Optional[Dict] = None):
        self.header = header
        self.info = info
        self.x = float(x)
        self.y = float(y)
        self.width = float(width)
        self.height = float(height)
        self.camera_info = camera_info or {}

    @classmethod
    def from_dict(cls, data: Dict) -> 'ImagePercept':
        return cls(
            header=Header.from_dict(data.get('header')),
            info=PerceptInfo.from_dict(data.get('info')),
            x=data.get('x', 0.0),
            y=data.get('y', 0.0),
            width=data.get('width', 0.0),
            height=data.get('height', 0.0),
            camera_info=data.get('camera_info')
        )

    @property
    def center(self) -> List[float]:
        return [self.x + self.width / 2, self.y + self.height / 2]

    def __repr__(self):
        return (f"ImagePercept(frame_id={self.header.frame_id!r}, class_id={self.info.class_id!r}, "
                f"box=[{self.x:.0f}, {self.y:.0f}, {self.width:.0f}, {self.height:.0f}])")


def percept_from_dict(data: Dict) -> Union[PosePercept, ImagePercept]:
    """Build a pose or image percept from a dictionary with an optional 'type' key."""
    percept_type = data.get('type')
    if percept_type is None:
        percept_type = 'image' if 'camera_info' in data else 'pose'

    if percept_type == 'image':
        return ImagePercept.from_dict(data)
    if percept_type == 'pose':
        return PosePercept.from_dict(data)
    raise ValueError(f"Unknown percept type: {percept_type}")
