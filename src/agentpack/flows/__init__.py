"""Flow resolution and content pipeline."""
