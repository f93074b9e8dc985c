"""Target planning, ownership, conflict resolution and installation."""
