"""
Exceptions raised while loading games and tracing logit branches.
"""


class QREError(Exception):
    """Base class for all errors raised by this package."""


class ConfigError(QREError, ValueError):
    """A configuration value is out of range."""


class InvalidGame(QREError):
    """The game file could not be read or describes an unsupported game."""


class InvalidFrequencies(QREError):
    """The observed frequency vector is malformed or has the wrong length."""


class OracleFailure(QREError):
    """Unexpected failure while evaluating payoffs."""


class PositivityLoss(QREError):
    """A corrected point left the interior of the simplex (or had λ < 0)."""


class SingularSystem(QREError):
    """The augmented Newton system could not be solved."""


class StepUnderflow(QREError):
    """The step size dropped below the configured minimum."""
