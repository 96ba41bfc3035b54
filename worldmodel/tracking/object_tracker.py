# worldmodel/tracking/object_tracker.py

import time
import logging
import numpy as np
from typing import Dict, List, Mapping, Optional, Sequence, Union

from worldmodel.fusion.object_fusion import ObjectFusion
from worldmodel.model.object_model import ObjectModel
from worldmodel.model.percepts import ImagePercept, PosePercept, percept_from_dict
from worldmodel.model.state import ObjectState, parse_state
from worldmodel.model.tracked_object import Header, TrackedObject, to_covariance, validate_covariance
from worldmodel.tracking.association import associate
from worldmodel.tracking.publisher import ModelPublisher
from worldmodel.tracking.tracker import Tracker
from worldmodel.utils.calibration import CameraModelCache
from worldmodel.utils.config import DEFAULT_TRACKER_CONFIG
from worldmodel.utils.services import ObstacleDistanceService, ServiceCallError, ServiceProxy
from worldmodel.utils.transforms import (RigidTransform, TransformError, TransformGateway,
                                         bearing_rotation, rotate_covariance)
from worldmodel.verification.coordinator import VerificationCoordinator
from worldmodel.verification.verifier import ObjectVerifier

logger = logging.getLogger(__name__)


class Observation:
    """A percept after normalization: canonical frame, covariance and support resolved."""

    def __init__(self,
                 header: Header,
                 class_id: str,
                 object_id: str,
                 position: np.ndarray,
                 orientation: Optional[np.ndarray],
                 covariance: np.ndarray,
                 support: float):
        self.header = header
        self.class_id = class_id
        self.object_id = object_id
        self.position = position
        self.orientation = orientation
        self.covariance = covariance
        self.support = support

    def __repr__(self):
        x, y, z = self.position
        return (f"Observation(class_id={self.class_id!r}, object_id={self.object_id!r}, "
                f"position=({x:.2f}, {y:.2f}, {z:.2f}), support={self.support:.2f})")


class ObjectTracker(Tracker):
    """
    Maintains a de-duplicated model of objects from pose and image percepts.

    Each percept is normalized (camera ray, obstacle projection, default
    covariance, transform into the canonical frame, height and support
    checks) without holding the model lock. Association, fusion, lifecycle
    checks, verification and publishing then run inside one critical section
    on the model, so concurrent percepts never associate against a stale
    model. Verification calls are made while the lock is held: an object
    cannot change while it is being verified, at the cost of serializing
    verification latency across percepts. Every service has its own workers,
    so a hanging verifier cannot block obstacle ranging or other verifiers.
    """

    def __init__(self,
                 config: Dict = None,
                 transform_gateway: Optional[TransformGateway] = None,
                 distance_service: Optional[ObstacleDistanceService] = None,
                 verifiers: Union[Sequence[ObjectVerifier], Mapping[str, ObjectVerifier], None] = None,
                 publisher: Optional[ModelPublisher] = None,
                 fusion: Optional[ObjectFusion] = None,
                 model: Optional[ObjectModel] = None):
        """
        Initialize the object tracker.

        Args:
            config: Configuration with keys:
                - frame_id: Canonical frame of the model (default: 'map')
                - project_objects: Project percepts to the next obstacle (default: False)
                - default_distance: Range assumed for image percepts in meters (default: 1.0)
                - distance_variance: Radial variance of the default covariance (default: 1.0)
                - angle_variance: Angular variance of the default covariance (default: 5 deg)
                - min_height, max_height: Allowed height relative to the sensor
                - verification_services: Names of the verifiers to call, in order
                - confirmation_support: Support added per confirmation (default: 100.0)
                - service_timeout: Maximum wait for external services in seconds
                - transform_timeout: Maximum wait for transforms in seconds
            transform_gateway: Source of transforms into the canonical frame
            distance_service: Obstacle ranging service (optional)
            verifiers: Verification services, as list or name -> verifier mapping
            publisher: Receiver of model snapshots and object updates (optional)
            fusion: Fusion engine (default: ObjectFusion())
            model: Object model to operate on (default: a new empty model)
        """
        super().__init__(config)
        self.config = {
            **DEFAULT_TRACKER_CONFIG,
            **(config or {})
        }

        self.model = model if model is not None else ObjectModel()
        self.fusion = fusion or ObjectFusion()
        self.transform_gateway = transform_gateway
        self.publisher = publisher
        self.camera_models = CameraModelCache()

        self.distance_to_obstacle = ServiceProxy(
            'get_distance_to_obstacle',
            distance_service.get_distance if distance_service is not None else None,
            timeout=self.config['service_timeout']
        )
        self.verification = VerificationCoordinator(verifiers, {
            'verification_services': self.config['verification_services'],
            'confirmation_support': self.config['confirmation_support'],
            'service_timeout': self.config['service_timeout'],
        })

    def initialize(self) -> None:
        """Initialize the object tracker."""
        logger.info(f"Initializing object tracker in frame '{self.config['frame_id']}'...")

        if self.config['project_objects'] and not self.distance_to_obstacle.exists():
            logger.warning("project_objects is true, but GetDistanceToObstacle service is not (yet) available")

        if self.transform_gateway is None:
            logger.warning("No transform gateway, only percepts in the canonical frame will be accepted")

        self.is_initialized = True

    def process_percept(self, percept: Union[PosePercept, ImagePercept, Dict]) -> Optional[Dict]:
        if isinstance(percept, dict):
            percept = percept_from_dict(percept)

        if isinstance(percept, ImagePercept):
            return self.process_image_percept(percept)
        if isinstance(percept, PosePercept):
            return self.process_pose_percept(percept)
        raise TypeError(f"Unsupported percept type: {type(percept).__name__}")

    def process_image_percept(self, percept: ImagePercept) -> Optional[Dict]:
        """
        Convert an image percept into a pose percept at the default distance
        along the camera ray through the box center, and process it.
        """
        frame_id = percept.header.frame_id
        if not percept.camera_info and frame_id not in self.camera_models:
            logger.warning(f"Ignoring image percept without camera info for frame '{frame_id}'")
            return None

        try:
            camera_model = self.camera_models.get(frame_id, percept.camera_info)
        except ValueError as e:
            logger.warning(f"Ignoring image percept: {e}")
            return None

        u, v = percept.center
        ray = camera_model.project_pixel_to_ray(u, v)

        # optical axes (z forward, x right, y down) to body axes (x forward, y left, z up)
        direction = np.array([ray[2], -ray[0], -ray[1]])
        direction /= np.linalg.norm(direction)

        pose_percept = PosePercept(
            header=percept.header,
            info=percept.info,
            position=direction * self.config['default_distance'],
            orientation=bearing_rotation(direction).as_quat()
        )
        return self.process_pose_percept(pose_percept)

    def process_pose_percept(self, percept: PosePercept) -> Optional[Dict]:
        """
        Associate a pose percept with the model and update the model.

        Returns:
            Public representation of the created or updated object, or None
            if the percept was dropped
        """
        if not self.is_initialized:
            self.initialize()

        observation = self._normalize(percept)
        if observation is None:
            return None

        return self._integrate(observation)

    def _project_to_obstacle(self, position: np.ndarray, header: Header) -> Optional[float]:
        """Distance to the next obstacle along the bearing of a point, or None if unknown."""
        try:
            distance = self.distance_to_obstacle.call(position.copy(), header.copy())
        except ServiceCallError as e:
            logger.debug(f"Distance to obstacle unavailable: {e}")
            return None

        if distance is None or not np.isfinite(distance) or distance <= 0.0:
            return None
        return float(distance)

    def _lookup_transform(self, header: Header) -> Optional[RigidTransform]:
        if self.transform_gateway is None:
            logger.error(f"Cannot transform from '{header.frame_id}' to '{self.config['frame_id']}': "
                         f"no transform gateway")
            return None

        try:
            return self.transform_gateway.lookup_transform(
                self.config['frame_id'], header.frame_id, header.stamp, self.config['transform_timeout'])
        except TransformError as e:
            logger.error(f"{e}")
            return None

    def default_covariance(self, distance: float) -> np.ndarray:
        """
        Covariance of an observation at the given range, in bearing aligned axes.

        The radial variance is constant, the tangential variances grow with the
        squared distance.
        """
        tangential = max(distance * distance, 1.0) * self.config['angle_variance']
        return np.diag([self.config['distance_variance'], tangential, tangential])

    def _normalize(self, percept: PosePercept) -> Optional[Observation]:
        header = percept.header
        position = percept.position.copy()
        orientation = percept.orientation

        if not np.all(np.isfinite(position)) or \
                (orientation is not None and not np.all(np.isfinite(orientation))):
            logger.warning(f"Ignoring {percept.info.class_id} percept with non-finite pose")
            return None
        try:
            validate_covariance(percept.covariance)
        except ValueError as e:
            logger.warning(f"Ignoring {percept.info.class_id} percept: {e}")
            return None

        direction = bearing_rotation(position)
        distance = float(np.linalg.norm(position))

        if self.config['project_objects']:
            if distance < 1e-9:
                logger.debug("Ignoring percept without bearing")
                return None

            projected = self._project_to_obstacle(position, header)
            if projected is None:
                logger.debug("Ignoring percept due to unknown or infinite distance")
                return None

            distance = projected
            position = position / np.linalg.norm(position) * distance
            logger.debug(f"Projected percept to a distance of {distance:.1f} m")

        if orientation is None:
            orientation = direction.as_quat()

        covariance = percept.covariance
        if not np.any(covariance):
            covariance = rotate_covariance(self.default_covariance(distance), direction)

        # sensor height stays 0 for percepts already in the canonical frame
        sensor_height = 0.0
        frame_id = self.config['frame_id']
        if frame_id and header.frame_id != frame_id:
            transform = self._lookup_transform(header)
            if transform is None:
                return None

            position = transform.apply(position)
            orientation = transform.rotate_orientation(orientation)
            covariance = transform.rotate_covariance(covariance)
            sensor_height = transform.translation[2]

        relative_height = position[2] - sensor_height
        if relative_height < self.config['min_height'] or relative_height > self.config['max_height']:
            logger.info(f"Discarding {percept.info.class_id} percept with height {relative_height:f}")
            return None

        support = percept.info.support()
        if support == 0.0:
            logger.warning("Ignoring percept with support == 0.0")
            return None

        return Observation(
            header=Header(frame_id or header.frame_id, header.stamp),
            class_id=percept.info.class_id,
            object_id=percept.info.object_id,
            position=position,
            orientation=orientation,
            covariance=covariance,
            support=support
        )

    def _integrate(self, observation: Observation) -> Optional[Dict]:
        with self.model.lock():
            if observation.object_id:
                obj = self.model.get(observation.object_id)
                if obj is None:
                    logger.warning(f"Ignoring percept for unknown object {observation.object_id}")
                    return None
            else:
                obj, distance = associate(self.model.objects(), observation.class_id,
                                          observation.position, observation.covariance)
                if obj is not None:
                    logger.debug(f"Associated percept with object {obj.object_id} (d^2 = {distance:.3f})")

            if obj is not None and obj.is_fixed():
                logger.debug(f"Percept was associated to object {obj.object_id}, which has a fixed state")
                return None

            if obj is None:
                # the estimate is complete before the object becomes visible in the model
                obj = self.fusion.initialize_object(TrackedObject(observation.class_id), observation.position,
                                                    observation.covariance, observation.orientation,
                                                    observation.support, observation.header)
                obj = self.model.insert(obj)
                x, y, _ = observation.position
                logger.info(f"Found new object {obj.object_id} of class {obj.class_id} at ({x:f},{y:f})!")
            elif observation.support > 0.0:
                self.fusion.fuse(obj, observation.position, observation.covariance, observation.support)
            else:
                self.fusion.apply_support(obj, observation.support)

            self.fusion.update_orientation(obj, observation.orientation, observation.header)

            self.verification.verify(obj)

            message = obj.to_message()
            self._publish(message)

        return message

    def set_object_state(self, object_id: str, new_state: Union[ObjectState, int, str]) -> bool:
        """
        Set the lifecycle state of an object. Fixed objects may be changed too.

        Returns:
            Success flag (False for unknown objects or invalid states)
        """
        try:
            state = parse_state(new_state)
        except ValueError as e:
            logger.warning(f"Cannot set state of object {object_id}: {e}")
            return False

        with self.model.lock():
            obj = self.model.get(object_id)
            if obj is None:
                logger.warning(f"Cannot set state of unknown object {object_id}")
                return False

            obj.set_state(state)
            logger.info(f"Set state of object {object_id} to {state.name}")
            self._publish(obj.to_message())

        return True

    def add_object(self, message: Dict, map_to_next_obstacle: bool = False) -> Optional[Dict]:
        """
        Add an object to the model, or overwrite the object with the same id.

        Args:
            message: Object representation with header, info (class_id,
                object_id, support), pose (position, orientation), covariance
                and state entries
            map_to_next_obstacle: Move the position along its bearing onto
                the next obstacle

        Returns:
            Public representation of the resulting object, or None on failure
        """
        info = message.get('info') or {}
        pose = message.get('pose') or {}
        class_id = info.get('class_id', '') or ''
        object_id = info.get('object_id', '') or ''

        header = Header.from_dict(message.get('header'))
        if header.stamp == 0.0:
            header.stamp = time.time()

        try:
            state = message.get('state', ObjectState.ACTIVE)
            if isinstance(state, dict):
                state = state.get('state', ObjectState.ACTIVE)
            state = parse_state(state)
            support = float(info.get('support', 0.0))
            position = np.asarray(pose.get('position', [0.0, 0.0, 0.0]), dtype=float).reshape(3)
            orientation = pose.get('orientation')
            orientation = np.array([0.0, 0.0, 0.0, 1.0]) if orientation is None else \
                np.asarray(orientation, dtype=float).reshape(4)
            covariance = validate_covariance(to_covariance(message.get('covariance', pose.get('covariance'))))
            if not np.all(np.isfinite(position)) or not np.all(np.isfinite(orientation)):
                raise ValueError("Pose contains non-finite values")
        except (TypeError, ValueError) as e:
            logger.warning(f"Invalid add object request: {e}")
            return None

        if map_to_next_obstacle:
            if not self.distance_to_obstacle.exists() or np.linalg.norm(position) < 1e-9:
                logger.debug("Could not map object to next obstacle")
                return None

            distance = self._project_to_obstacle(position, header)
            if distance is None:
                logger.debug("Could not map object to next obstacle due to unknown or infinite distance")
                return None
            position = position / np.linalg.norm(position) * distance

        if not np.any(covariance):
            covariance = np.eye(3)

        frame_id = self.config['frame_id']
        if frame_id and header.frame_id != frame_id:
            transform = self._lookup_transform(header)
            if transform is None:
                return None
            position = transform.apply(position)
            orientation = transform.rotate_orientation(orientation)
            covariance = transform.rotate_covariance(covariance)
            header.frame_id = frame_id

        with self.model.lock():
            obj = self.model.get(object_id) if object_id else None
            new_object = obj is None
            if new_object:
                obj = TrackedObject(class_id, object_id)
            elif class_id:
                obj.class_id = class_id

            obj.header = header
            obj.set_position(position)
            obj.set_orientation(orientation)
            obj.covariance = covariance
            obj.set_state(state)
            obj.support = support

            if new_object:
                obj = self.model.insert(obj)
                logger.info(f"Added object {obj.object_id} of class {obj.class_id}")

            response = obj.to_message()
            self._publish(response)

        return response

    def get_object_model(self) -> List[Dict]:
        return self.model.to_message()

    def handle_syscommand(self, command: str) -> None:
        """React to system commands; 'reset' clears the model."""
        if command == 'reset':
            logger.info("Resetting object model.")
            self.reset()

    def reset(self) -> None:
        """Remove all objects from the model."""
        with self.model.lock():
            self.model.reset()
            self._publish()

    def _publish(self, obj_message: Optional[Dict] = None) -> None:
        """Publish an object update and the model snapshot; called with the model locked."""
        if self.publisher is None:
            return

        try:
            if obj_message is not None:
                self.publisher.publish_object(obj_message)
            self.publisher.publish_model(self.model.to_message())
        except Exception as e:
            logger.warning(f"Error publishing object model: {e}")
