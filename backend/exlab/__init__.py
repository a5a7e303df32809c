"""
ExLab - per-exercise practice environments for cybersecurity training.
"""

__version__ = "1.0.0"
