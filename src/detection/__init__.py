"""
Detection module: finds people in video frames.
"""

from .base import Detector
from .hog import HogPeopleDetector, HogParameters, DEFAULT_HOG_PARAMETERS

__all__ = ['Detector', 'HogPeopleDetector', 'HogParameters', 'DEFAULT_HOG_PARAMETERS']
