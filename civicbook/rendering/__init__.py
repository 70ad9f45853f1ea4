"""Section markup rendering and HTML building."""
