"""
CivicTrack: congressional bill sync and status engine.
"""

__version__ = "0.1.0"
