"""Post-recording processing pipeline."""
