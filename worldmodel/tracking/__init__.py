# worldmodel/tracking/__init__.py
"""
Percept association and tracking of objects in the world model.
"""

from worldmodel.tracking.tracker import Tracker
from worldmodel.tracking.publisher import ModelPublisher
from worldmodel.tracking.object_tracker import ObjectTracker

__all__ = ['Tracker', 'ModelPublisher', 'ObjectTracker']
