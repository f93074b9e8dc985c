"""I/O operations for agentpack."""
