# tests/test_calibration.py

import pytest
import numpy as np

from worldmodel.utils.calibration import CameraModelCache, PinholeCameraModel

CAMERA_INFO = {
    'width': 640,
    'height': 480,
    'K': [525.0, 0.0, 319.5, 0.0, 525.0, 239.5, 0.0, 0.0, 1.0],
    'D': [0.0, 0.0, 0.0, 0.0, 0.0],
}


class TestPinholeCameraModel:
    """Test the PinholeCameraModel class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.model = PinholeCameraModel.from_camera_info(CAMERA_INFO)

    def test_from_camera_info(self):
        """Test parsing of camera info dictionaries."""
        info = self.model.get_camera_info()

        assert info['focal_length'] == (525.0, 525.0)
        assert info['principal_point'] == (319.5, 239.5)
        assert info['resolution'] == (640, 480)

    def test_missing_intrinsics(self):
        """Test that camera info without K is rejected."""
        with pytest.raises(ValueError):
            PinholeCameraModel.from_camera_info({'width': 640, 'height': 480})

    def test_principal_point_ray(self):
        """Test that the principal point looks along the optical axis."""
        ray = self.model.project_pixel_to_ray(319.5, 239.5)
        assert np.allclose(ray, [0.0, 0.0, 1.0])

    def test_off_axis_ray(self):
        """Test rays through off-center pixels."""
        ray = self.model.project_pixel_to_ray(319.5 + 525.0, 239.5)
        assert np.allclose(ray, np.array([1.0, 0.0, 1.0]) / np.sqrt(2.0))

        ray = self.model.project_pixel_to_ray(319.5, 239.5 - 525.0)
        assert np.allclose(ray, np.array([0.0, -1.0, 1.0]) / np.sqrt(2.0))
        assert np.linalg.norm(ray) == pytest.approx(1.0)

    def test_projection_matrix_preferred(self):
        """Test that rectified intrinsics from P are used when given."""
        info = dict(CAMERA_INFO, P=[500.0, 0.0, 300.0, 0.0, 0.0, 500.0, 200.0, 0.0, 0.0, 0.0, 1.0, 0.0])
        model = PinholeCameraModel.from_camera_info(info)

        assert np.allclose(model.project_pixel_to_ray(300.0, 200.0), [0.0, 0.0, 1.0])
        assert np.allclose(model.project_pixel_to_ray(800.0, 200.0), np.array([1.0, 0.0, 1.0]) / np.sqrt(2.0))

    def test_distortion(self):
        """Test that distortion is removed from unrectified pixels."""
        info = dict(CAMERA_INFO, D=[-0.3, 0.1, 0.0, 0.0, 0.0])
        model = PinholeCameraModel.from_camera_info(info)

        # the principal point is not affected by radial distortion
        assert np.allclose(model.project_pixel_to_ray(319.5, 239.5), [0.0, 0.0, 1.0])

        distorted = model.project_pixel_to_ray(600.0, 239.5)
        undistorted = self.model.project_pixel_to_ray(600.0, 239.5)
        assert np.linalg.norm(distorted) == pytest.approx(1.0)
        assert distorted[0] > undistorted[0]


class TestCameraModelCache:
    """Test the CameraModelCache class."""

    def test_model_created_once(self):
        """Test that the first camera info per frame is kept."""
        cache = CameraModelCache()
        first = cache.get('camera', CAMERA_INFO)
        second = cache.get('camera', dict(CAMERA_INFO, K=[100.0, 0.0, 50.0, 0.0, 100.0, 50.0, 0.0, 0.0, 1.0]))

        assert first is second
        assert len(cache) == 1
        assert 'camera' in cache
        assert 'other' not in cache

    def test_models_per_frame(self):
        """Test that each frame gets its own model."""
        cache = CameraModelCache()
        cache.get('left', CAMERA_INFO)
        cache.get('right', CAMERA_INFO)

        assert len(cache) == 2
