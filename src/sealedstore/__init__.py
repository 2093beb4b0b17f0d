"""SealedStore - blob persistence with optional encryption at rest."""

__version__ = "0.1.0"
