"""Version information for agentpack."""

__version__ = "0.3.0"
