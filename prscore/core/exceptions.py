"""
Pipeline error types.

Configuration problems are raised before any batch state exists; judgment
and transition errors abort the batch that is running.
"""


class ConfigurationError(ValueError):
    """Missing rule set, missing prompt template or an invalid template."""


class JudgmentError(RuntimeError):
    """The judgment service failed or returned an unusable response."""


class InvalidTransitionError(RuntimeError):
    """An evaluation batch was moved out of a terminal state."""
