"""Assessment paper assembly and auto-grading core."""

__version__ = "0.1.0"
