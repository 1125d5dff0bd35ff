"""imgopt - batch image conversion with a bounded concurrent pipeline."""

__version__ = "0.3.0"
