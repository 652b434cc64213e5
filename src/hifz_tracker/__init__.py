"""Personal Quran memorization tracker."""

__version__ = '0.1.0'
