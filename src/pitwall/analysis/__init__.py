"""Analysis layer: lap records and race-engineering queries over processor state."""
