"""Schedule coordination and conflict detection for construction projects."""

__version__ = "0.1.0"
