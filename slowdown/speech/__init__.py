"""Speech-to-text collaborators."""
