"""Pure operations on agentpack models."""
