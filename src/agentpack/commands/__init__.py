"""CLI commands for agentpack."""
