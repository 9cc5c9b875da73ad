"""Denormalized meeting search index."""
