"""Image loading and directory-encoded labels."""
