# pipeline/__init__.py
"""
Pipeline integration modules for the world model.
"""

from pipeline.percept_pipeline import PerceptPipeline, PerceptResult
from pipeline.data_sources import PerceptSource, ListPerceptSource, PerceptFileSource
from pipeline.publishers import RecordingPublisher, LoggingPublisher

__all__ = ['PerceptPipeline', 'PerceptResult', 'PerceptSource', 'ListPerceptSource', 'PerceptFileSource',
           'RecordingPublisher', 'LoggingPublisher']
