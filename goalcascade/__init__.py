"""
Goal completion cascade for rehabilitation programs.
"""

__version__ = "0.1.0"
