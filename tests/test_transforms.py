# tests/test_transforms.py

import threading
import time
import pytest
import numpy as np
from scipy.spatial.transform import Rotation

from worldmodel.utils.transforms import (RigidTransform, StaticTransformBuffer, TransformError,
                                         bearing_rotation, rotate_covariance, transform_points)


class TestTransformHelpers:
    """Test the free transform functions."""

    def test_transform_points(self):
        """Test homogeneous point transformation."""
        matrix = np.eye(4)
        matrix[:3, 3] = [1.0, 2.0, 3.0]
        points = np.array([[0.0, 0.0, 0.0], [1.0, 1.0, 1.0]])

        result = transform_points(points, matrix)

        assert np.allclose(result, [[1.0, 2.0, 3.0], [2.0, 3.0, 4.0]])

    def test_rotate_covariance(self):
        """Test that covariances follow the rotation of the frame."""
        rotation = Rotation.from_euler('z', 90, degrees=True)
        covariance = np.diag([1.0, 0.1, 0.1])

        rotated = rotate_covariance(covariance, rotation)

        assert np.allclose(rotated, np.diag([0.1, 1.0, 0.1]))
        assert np.allclose(rotate_covariance(covariance, rotation.as_matrix()), rotated)

    @pytest.mark.parametrize("direction", [
        [1.0, 0.0, 0.0],
        [0.0, 2.0, 0.0],
        [1.0, 0.0, -1.0],
        [-3.0, 1.0, 2.0],
    ])
    def test_bearing_rotation_aligns_x_axis(self, direction):
        """Test that the bearing rotation maps the x axis onto the direction."""
        rotation = bearing_rotation(direction)
        expected = np.asarray(direction) / np.linalg.norm(direction)

        assert np.allclose(rotation.apply([1.0, 0.0, 0.0]), expected)

    def test_bearing_rotation_has_no_roll(self):
        """Test that the rotated y axis stays horizontal."""
        rotation = bearing_rotation([1.0, 1.0, 1.0])
        assert rotation.apply([0.0, 1.0, 0.0])[2] == pytest.approx(0.0, abs=1e-12)

    def test_bearing_rotation_zero_vector(self):
        """Test that a zero direction gives the identity."""
        assert np.allclose(bearing_rotation([0.0, 0.0, 0.0]).as_quat(), [0.0, 0.0, 0.0, 1.0])


class TestRigidTransform:
    """Test the RigidTransform class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.transform = RigidTransform(Rotation.from_euler('z', 90, degrees=True), [1.0, 2.0, 0.0])

    def test_apply(self):
        """Test transforming single points and point arrays."""
        assert np.allclose(self.transform.apply([1.0, 0.0, 0.0]), [1.0, 3.0, 0.0])
        assert np.allclose(self.transform.apply([[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]]),
                           [[1.0, 3.0, 0.0], [0.0, 2.0, 0.0]])

    def test_rotate_orientation(self):
        """Test expressing an orientation in the target frame."""
        quaternion = self.transform.rotate_orientation([0.0, 0.0, 0.0, 1.0])
        assert np.allclose(np.abs(quaternion), [0.0, 0.0, np.sqrt(0.5), np.sqrt(0.5)])

    def test_inverse(self):
        """Test that a transform composed with its inverse is the identity."""
        point = np.array([0.3, -1.2, 4.0])
        inverse = self.transform.inverse()

        assert np.allclose(inverse.apply(self.transform.apply(point)), point)
        assert np.allclose((self.transform * inverse).as_matrix(), np.eye(4))

    def test_composition(self):
        """Test that composition applies the right transform first."""
        shift = RigidTransform(translation=[1.0, 0.0, 0.0])
        composed = self.transform * shift

        assert np.allclose(composed.apply([0.0, 0.0, 0.0]), self.transform.apply([1.0, 0.0, 0.0]))

    def test_from_matrix(self):
        """Test creating a transform from a homogeneous matrix."""
        transform = RigidTransform.from_matrix(self.transform.as_matrix())
        assert np.allclose(transform.apply([1.0, 0.0, 0.0]), [1.0, 3.0, 0.0])

        with pytest.raises(ValueError):
            RigidTransform.from_matrix(np.eye(3))

    def test_from_dict(self):
        """Test creating transforms from configuration entries."""
        rpy = RigidTransform.from_dict({'translation': [1.0, 2.0, 0.0], 'rpy': [0.0, 0.0, np.pi / 2]})
        quaternion = RigidTransform.from_dict({'translation': [1.0, 2.0, 0.0],
                                               'rotation': [0.0, 0.0, np.sqrt(0.5), np.sqrt(0.5)]})
        identity = RigidTransform.from_dict({})

        assert np.allclose(rpy.apply([1.0, 0.0, 0.0]), [1.0, 3.0, 0.0])
        assert np.allclose(quaternion.apply([1.0, 0.0, 0.0]), [1.0, 3.0, 0.0])
        assert np.allclose(identity.as_matrix(), np.eye(4))


class TestStaticTransformBuffer:
    """Test the StaticTransformBuffer gateway."""

    def setup_method(self):
        """Set up test fixtures."""
        self.buffer = StaticTransformBuffer()
        self.buffer.set_transform('map', 'base_link', RigidTransform(translation=[1.0, 0.0, 0.0]))
        self.buffer.set_transform('base_link', 'camera',
                                  RigidTransform(Rotation.from_euler('z', 90, degrees=True), [0.0, 0.0, 1.0]))

    def test_frames(self):
        """Test listing of known frames."""
        assert self.buffer.frames() == ['base_link', 'camera', 'map']

    def test_identity_lookup(self):
        """Test that a frame maps onto itself."""
        transform = self.buffer.lookup_transform('map', 'map')
        assert np.allclose(transform.as_matrix(), np.eye(4))

    def test_chained_lookup(self):
        """Test lookups across several edges of the frame graph."""
        transform = self.buffer.lookup_transform('map', 'camera')
        assert np.allclose(transform.apply([1.0, 0.0, 0.0]), [1.0, 1.0, 1.0])

    def test_reverse_lookup(self):
        """Test lookups against the direction of the registered edges."""
        forward = self.buffer.lookup_transform('map', 'camera')
        backward = self.buffer.lookup_transform('camera', 'map')

        point = np.array([2.0, -1.0, 0.5])
        assert np.allclose(backward.apply(forward.apply(point)), point)

    def test_can_transform(self):
        """Test connectivity checks."""
        assert self.buffer.can_transform('camera', 'map')
        assert not self.buffer.can_transform('map', 'odom')

    def test_lookup_timeout(self):
        """Test that unconnected frames raise after the timeout."""
        start = time.monotonic()
        with pytest.raises(TransformError):
            self.buffer.lookup_transform('map', 'odom', timeout=0.05)
        assert time.monotonic() - start >= 0.05

    def test_lookup_waits_for_transform(self):
        """Test that a lookup succeeds when the transform arrives within the timeout."""
        def publish_later():
            time.sleep(0.05)
            self.buffer.set_transform('map', 'odom', RigidTransform(translation=[0.0, 5.0, 0.0]))

        thread = threading.Thread(target=publish_later)
        thread.start()
        transform = self.buffer.lookup_transform('map', 'odom', timeout=2.0)
        thread.join()

        assert np.allclose(transform.apply([0.0, 0.0, 0.0]), [0.0, 5.0, 0.0])

    def test_invalid_frames(self):
        """Test that empty frame ids are rejected."""
        with pytest.raises(TransformError):
            self.buffer.lookup_transform('map', '')
        with pytest.raises(ValueError):
            self.buffer.set_transform('', 'camera', RigidTransform())
