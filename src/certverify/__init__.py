"""certverify: academic certificate verification service."""

__version__ = "1.0.0"
