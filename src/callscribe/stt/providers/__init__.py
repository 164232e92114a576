"""Recognition engine implementations."""
