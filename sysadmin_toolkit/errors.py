"""Exception hierarchy for the bootstrap procedure."""

from typing import Optional


class SetupError(Exception):
    """Base exception for setup errors."""

    pass


class PreconditionError(SetupError):
    """Raised when the process lacks the privileges required to run."""

    pass


class ConfigurationError(SetupError):
    """Raised when the configuration still carries its shipped placeholders."""

    pass


class ExecutionError(SetupError):
    """Raised when an external command fails."""

    def __init__(
        self, command: str, returncode: Optional[int] = None, output: str = ""
    ) -> None:
        self.command = command
        self.returncode = returncode
        self.output = output
        message = f"Command failed (code {returncode}): {command}"
        if output:
            message += f"\nOutput: {output}"
        super().__init__(message)


class StepError(SetupError):
    """
    A provisioning step failed.

    Attributes:
        step: Key of the failed step.
        operation: Human readable description of the failed operation.
        returncode: Exit status of the failing command, if any.
    """

    def __init__(
        self, step: str, operation: str, returncode: Optional[int] = None
    ) -> None:
        self.step = step
        self.operation = operation
        self.returncode = returncode
        suffix = f" (exit status {returncode})" if returncode is not None else ""
        super().__init__(f"{operation}{suffix}")


class ValidationError(StepError):
    """Raised when a generated configuration fails its syntax check."""

    pass
