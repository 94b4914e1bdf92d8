"""Read-only course catalog API: search, filtering, ranking and statistics."""
