"""Cross-cutting runtime support (logging)."""
