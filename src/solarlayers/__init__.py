"""Solar data-layer retrieval, building isolation, and false-color rendering."""

__version__ = "0.1.0"
