"""
sqsd.exceptions — Errors raised by the daemon outside the per-message path.

Per-message failures (delivery, acknowledgment) are never raised; they are
logged and contained inside the worker that observed them.
"""


class SqsdError(Exception):
    """Base class for sqsd errors."""


class ConfigurationError(SqsdError):
    """
    Raised when the process configuration is missing or invalid.

    Always fatal: the daemon exits before any client or Supervisor is built.

    Attributes:
        variable: Environment variable that failed validation.
    """

    def __init__(self, variable: str, message: str) -> None:
        self.variable = variable
        super().__init__(f"{variable}: {message}")


class SupervisorStateError(SqsdError):
    """Raised on an illegal Supervisor lifecycle transition (e.g. restart after stop)."""
