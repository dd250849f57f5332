"""colorgen - coloring page generation backend"""

__version__ = "0.1.0"
