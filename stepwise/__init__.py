"""stepwise — dependency-aware execution of generated command plans."""

__version__ = "0.1.0"
