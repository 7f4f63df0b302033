"""lodstream: adaptive level-of-detail streaming for 3D scenes."""

__version__ = "0.1.0"

__all__ = ["__version__"]
