"""Utility modules for SealedStore."""
