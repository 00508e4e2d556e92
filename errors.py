"""
errors.py

Exception hierarchy for the circuit pipeline. Every failure raised by the
orchestrator, the testers and the helper modules derives from CircomkitError so
callers can catch the whole family at once; plain OSError and JSON decode
errors are allowed to pass through untouched.
"""

from pathlib import Path
from typing import Union


class CircomkitError(Exception):
    """Base class for all pipeline errors."""


class CircuitNotFound(CircomkitError):
    """A required circuit file or compiled artifact is missing."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        super().__init__(f"Circuit file not found: {self.path}")


class _StageError(CircomkitError):
    prefix = "Stage failed"

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"{self.prefix}: {message}")


class CompilationFailed(_StageError):
    prefix = "Circuit compilation failed"


class WitnessGenerationFailed(_StageError):
    prefix = "Witness generation failed"


class ProofGenerationFailed(_StageError):
    prefix = "Proof generation failed"


class VerificationFailed(_StageError):
    prefix = "Proof verification failed"


class InvalidConfig(CircomkitError):
    def __init__(self, message: str):
        self.message = message
        super().__init__(f"Invalid circuit configuration: {message}")


class PtauNotFound(CircomkitError):
    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        super().__init__(f"PTAU file not found: {self.path}")


class InvalidSignals(CircomkitError):
    def __init__(self, message: str):
        self.message = message
        super().__init__(f"Invalid input signals: {message}")


class ConstraintNotSatisfied(CircomkitError):
    """
    Assertion mismatch reported by a tester (not a pipeline fault).
    """

    def __init__(self, expected, actual):
        self.expected = str(expected)
        self.actual = str(actual)
        super().__init__(f"Constraint not satisfied: expected {self.expected}, got {self.actual}")


class ToolNotFound(CircomkitError):
    def __init__(self, tool: str):
        self.tool = tool
        super().__init__(f"External tool not found: {tool}. Please ensure it is installed and in PATH")


class CommandFailed(CircomkitError):
    """
    An external command exited with a nonzero status. The captured stderr is
    kept in full on the instance and in the message.
    """

    def __init__(self, command: str, exit_code: int, stderr: str):
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(f"Command '{command}' failed with exit code {exit_code}: {stderr}")


class ExpectationFailed(CircomkitError):
    """Raised by tester assertions whose expected outcome did not happen."""
