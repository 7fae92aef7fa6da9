"""Exception types shared by the agent loop, transport and setup helpers."""


class AgentError(Exception):
    """Raised by the agent loop or setup helpers for reportable runtime failures."""


class ConfigError(AgentError):
    """Raised for invalid configuration (missing API key, bad config value, etc.)."""
