# worldmodel/fusion/__init__.py
"""
Fusion of percept observations into tracked object estimates.
"""

from worldmodel.fusion.object_fusion import ObjectFusion, squared_mahalanobis

__all__ = ['ObjectFusion', 'squared_mahalanobis']
