"""Site Access API Application."""
