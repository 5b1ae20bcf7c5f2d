"""Text-message assistant that books Resy tables."""
