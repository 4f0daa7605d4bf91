"""Infrastructure layer - configuration, logging and order persistence."""
