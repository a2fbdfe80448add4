"""finquiz: client-side orchestration for a timed financial literacy quiz."""

__version__ = "0.1.0"
