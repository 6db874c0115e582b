"""ReviewGraph: dependency-ordered presentation of code changes."""

__version__ = "0.1.0"
