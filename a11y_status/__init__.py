"""WSU Accessibility Training certification status cache."""

__version__ = "1.0.0"
