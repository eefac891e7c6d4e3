"""Featured image generation for content platforms."""

__version__ = "0.1.0"
