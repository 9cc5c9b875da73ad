"""Lossless archive of captured audio and its object store."""
