# worldmodel/model/__init__.py
"""
Tracked object representation, percepts and the shared object model store.
"""

from worldmodel.model.state import ObjectState, parse_state
from worldmodel.model.tracked_object import Header, TrackedObject
from worldmodel.model.object_model import ObjectModel
from worldmodel.model.percepts import PerceptInfo, PosePercept, ImagePercept, percept_from_dict

__all__ = ['ObjectState', 'parse_state', 'Header', 'TrackedObject', 'ObjectModel',
           'PerceptInfo', 'PosePercept', 'ImagePercept', 'percept_from_dict']
