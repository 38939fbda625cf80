"""Cross-cutting runtime support."""
