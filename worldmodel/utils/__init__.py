# worldmodel/utils/__init__.py
"""
Utility functions for the world model.
"""

from worldmodel.utils.transforms import (RigidTransform, TransformGateway,
                                         StaticTransformBuffer, TransformError)
from worldmodel.utils.calibration import PinholeCameraModel, CameraModelCache
from worldmodel.utils.services import ServiceProxy, ServiceCallError, ObstacleDistanceService

__all__ = ['RigidTransform', 'TransformGateway', 'StaticTransformBuffer', 'TransformError',
           'PinholeCameraModel', 'CameraModelCache',
           'ServiceProxy', 'ServiceCallError', 'ObstacleDistanceService']
