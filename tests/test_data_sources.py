# tests/test_data_sources.py

import os
import pytest
import yaml

from pipeline.data_sources import ListPerceptSource, PerceptFileSource
from worldmodel.model.percepts import ImagePercept, PosePercept

POSE = {
    'type': 'pose',
    'header': {'frame_id': 'map', 'stamp': 1.0},
    'info': {'class_id': 'victim', 'class_support': 1.0},
    'pose': {'position': [1.0, 2.0, 0.0]},
}

IMAGE = {
    'header': {'frame_id': 'camera', 'stamp': 2.0},
    'info': {'class_id': 'hazmat', 'class_support': 1.0},
    'x': 300, 'y': 220, 'width': 40, 'height': 40,
    'camera_info': {'K': [525.0, 0.0, 319.5, 0.0, 525.0, 239.5, 0.0, 0.0, 1.0]},
}


class TestListPerceptSource:
    """Test the ListPerceptSource class."""

    def test_iteration(self):
        """Test that dictionaries are converted in order."""
        source = ListPerceptSource([POSE, IMAGE])

        percepts = list(source)

        assert len(percepts) == 2
        assert isinstance(percepts[0], PosePercept)
        assert isinstance(percepts[1], ImagePercept)
        assert percepts[1].center == [320.0, 240.0]

    def test_invalid_entries_skipped(self):
        """Test that malformed entries are skipped."""
        source = ListPerceptSource([
            POSE,
            {'type': 'lidar'},
            {'type': 'pose', 'pose': {'position': [1.0, 2.0]}},
            {'type': 'pose', 'covariance': [1.0, 2.0]},
        ])

        assert len(source) == 1

    def test_get_percept(self):
        """Test the explicit read interface and reset."""
        source = ListPerceptSource([POSE])

        success, percept = source.get_percept()
        assert success
        assert percept.info.class_id == 'victim'
        assert source.get_percept() == (False, None)

        source.reset()
        assert source.get_percept()[0]


class TestPerceptFileSource:
    """Test the PerceptFileSource class."""

    def test_list_file(self, tmp_path):
        """Test reading a plain percept list."""
        path = tmp_path / "percepts.yaml"
        path.write_text(yaml.safe_dump([POSE, IMAGE]))

        with PerceptFileSource(str(path)) as source:
            percepts = list(source)

        assert [type(percept) for percept in percepts] == [PosePercept, ImagePercept]
        assert percepts[0].header.stamp == 1.0

    def test_mapping_file(self, tmp_path):
        """Test reading a file with a 'percepts' section."""
        path = tmp_path / "percepts.yaml"
        path.write_text(yaml.safe_dump({'percepts': [POSE]}))

        with PerceptFileSource(str(path)) as source:
            assert len(source) == 1

    def test_empty_file(self, tmp_path):
        """Test reading an empty file."""
        path = tmp_path / "percepts.yaml"
        path.write_text("")

        with PerceptFileSource(str(path)) as source:
            assert list(source) == []

    def test_missing_file(self, tmp_path):
        """Test that missing files are reported."""
        with pytest.raises(FileNotFoundError):
            with PerceptFileSource(str(tmp_path / "missing.yaml")):
                pass


class TestExample:
    """Test the command line example end to end."""

    def test_run_on_file(self, tmp_path):
        """Test replaying the bundled example percepts."""
        import example_worldmodel
        from worldmodel.utils.config import load_config

        root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
        config = load_config(os.path.join(root, "config", "worldmodel_config.yaml"))
        pipeline = example_worldmodel.create_pipeline(config)
        output = tmp_path / "model.yaml"

        model = example_worldmodel.run_on_file(
            pipeline, os.path.join(root, "config", "example_percepts.yaml"), str(output), workers=1)

        assert [obj['info']['class_id'] for obj in model] == ['victim', 'qrcode', 'hazmat']
        assert model[0]['info']['support'] == 2.0
        with open(output) as f:
            assert len(yaml.safe_load(f)['objects']) == 3
