"""SubWeave: chunked multi-stage subtitle generation."""

__version__ = "0.1.0"
