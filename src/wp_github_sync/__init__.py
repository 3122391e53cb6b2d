"""Mirror WordPress content into a GitHub repository."""

__version__ = "1.4.0"
