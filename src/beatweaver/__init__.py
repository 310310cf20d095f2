"""BeatWeaver: chapter beat generation with continuity validation."""

__version__ = "0.1.0"
