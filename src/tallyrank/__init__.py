"""Vote and ranking engine for a community product-ranking site."""

__version__ = "0.1.0"
