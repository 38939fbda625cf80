"""HTTP surface of the bridge."""
