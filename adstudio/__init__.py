"""Product Video AI - ad clips from product photos via Runware video models."""

__version__ = "0.1.0"
