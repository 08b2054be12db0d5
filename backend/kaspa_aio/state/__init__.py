"""Installation-state storage."""
