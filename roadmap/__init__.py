"""Document learning-roadmap segmentation."""

__version__ = "0.1.0"
