"""Medical chat relay and streaming client."""

__version__ = "0.1.0"
