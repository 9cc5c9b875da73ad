"""Microphone capture and frame fan-out."""
