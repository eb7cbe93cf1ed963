"""Image → feature-vector transforms."""
