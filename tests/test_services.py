# tests/test_services.py

import time
import pytest
from unittest.mock import MagicMock

from worldmodel.utils.services import ServiceCallError, ServiceProxy
from worldmodel.utils.config import load_config, parse_service_list, DEFAULT_TRACKER_CONFIG


class TestServiceProxy:
    """Test the ServiceProxy class."""

    def test_call(self):
        """Test forwarding of arguments and results."""
        handler = MagicMock(return_value=4.2)
        proxy = ServiceProxy('get_distance', handler, timeout=1.0)

        assert proxy.exists()
        assert proxy.call([1.0, 0.0, 0.0], header='map') == 4.2
        handler.assert_called_once_with([1.0, 0.0, 0.0], header='map')

    def test_missing_service(self):
        """Test calls to a service that is not there."""
        proxy = ServiceProxy('get_distance', None)

        assert not proxy.exists()
        with pytest.raises(ServiceCallError):
            proxy.call()

    def test_failing_service(self):
        """Test that handler exceptions are reported as call errors."""
        proxy = ServiceProxy('get_distance', MagicMock(side_effect=RuntimeError("sensor offline")))

        with pytest.raises(ServiceCallError) as excinfo:
            proxy.call()
        assert isinstance(excinfo.value.__cause__, RuntimeError)

    def test_timeout(self):
        """Test that slow services give up after the timeout."""
        proxy = ServiceProxy('slow', lambda: time.sleep(0.5), timeout=0.05)

        start = time.monotonic()
        with pytest.raises(ServiceCallError):
            proxy.call()
        assert time.monotonic() - start < 0.4


class TestConfig:
    """Test configuration loading."""

    def test_parse_service_list(self):
        """Test splitting of service lists."""
        assert parse_service_list("a, b,,c ") == ['a', 'b', 'c']
        assert parse_service_list(['a', ' ', 'b']) == ['a', 'b']
        assert parse_service_list("") == []
        assert parse_service_list(None) == []

    def test_defaults(self):
        """Test that defaults are used without a file."""
        config = load_config()

        assert config['tracker'] == DEFAULT_TRACKER_CONFIG
        assert config['pipeline']['workers'] == 4
        assert config['transforms'] == []

    def test_load_file(self, tmp_path):
        """Test merging a configuration file over the defaults."""
        path = tmp_path / "config.yaml"
        path.write_text(
            "tracker:\n"
            "  frame_id: world\n"
            "  verification_services: 'qr, thermal'\n"
            "pipeline:\n"
            "  workers: 2\n"
            "transforms:\n"
            "  - {parent: world, child: base_link, translation: [0, 0, 1]}\n"
        )

        config = load_config(str(path))

        assert config['tracker']['frame_id'] == 'world'
        assert config['tracker']['verification_services'] == ['qr', 'thermal']
        assert config['tracker']['default_distance'] == DEFAULT_TRACKER_CONFIG['default_distance']
        assert config['pipeline']['workers'] == 2
        assert len(config['transforms']) == 1

    def test_missing_file(self, tmp_path):
        """Test that a missing configuration file is an error."""
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "missing.yaml"))


class TestServiceIsolation:
    """Test that services do not share worker threads."""

    def test_hanging_service_does_not_block_others(self):
        """Test that exhausted workers of one service leave other services responsive."""
        hanging = ServiceProxy('hanging', lambda: time.sleep(0.5), timeout=0.02, max_workers=1)
        responsive = ServiceProxy('responsive', MagicMock(return_value=3.0), timeout=0.2)

        for _ in range(3):
            with pytest.raises(ServiceCallError):
                hanging.call()

        assert responsive.call() == 3.0
