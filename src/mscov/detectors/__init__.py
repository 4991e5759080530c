"""Project detectors."""
