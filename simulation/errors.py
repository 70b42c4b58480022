"""Engine error types for RingSim."""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Caller bug: empty team, bad dice, too few teams, bad multiplier.

    Raised before any wrestler mutation happens and never retried.
    """
