"""Motor policy intake: PDF field extraction and review backend."""

__version__ = "0.1.0"
