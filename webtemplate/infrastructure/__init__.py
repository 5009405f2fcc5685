"""Infrastructure Layer — logging, tracing, database and the migration tool wrapper."""
