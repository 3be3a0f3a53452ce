"""SQLite persistence: handler, ops mixins and repositories."""
