"""gitweave: orchestration layer over the git executable."""

__version__ = "0.1.0"

__all__ = ["__version__"]
