"""Content-addressed image upload service."""
