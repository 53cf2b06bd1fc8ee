"""Core market logic (pure integer arithmetic over immutable state)."""
