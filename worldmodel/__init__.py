# worldmodel/__init__.py
"""
Persistent object world model built from noisy object percepts.
"""

__version__ = "0.1.0"
