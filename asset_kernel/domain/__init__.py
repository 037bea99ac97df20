"""Pure domain layer: no database, no I/O."""
