"""reelsift - aggregate, classify and rank media search results."""

from reelsift.__version__ import __version__

__all__ = ["__version__"]
