"""Create and drop temporary PostgreSQL databases on a running instance."""

__version__ = "0.1.0"
__all__ = ["factory"]