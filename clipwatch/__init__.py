"""Watch-folder highlight montage pipeline."""

__version__ = "1.0.0"
