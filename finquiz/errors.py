"""Exception types raised by the orchestration core and its backend layer."""

from typing import Optional


class FinQuizError(Exception):
    """Base class for all finquiz errors."""


class BackendFailure(FinQuizError):
    """A scoring-service call failed (network, transport or service error).

    `reason` is the raw message from the service and is shown to the user
    verbatim.
    """

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"{operation}: {reason}")


class AnswerValidationError(FinQuizError, ValueError):
    """The selected answer is not one of the question's options."""


class StaleRoundError(FinQuizError):
    """A mutation targets a round that is no longer the current one."""

    def __init__(self, round_number: int, current: Optional[int]):
        self.round_number = round_number
        self.current = current
        super().__init__(f"round {round_number} is not current (current={current})")


class InvalidTransition(FinQuizError, RuntimeError):
    """The state machine was asked to make a transition it does not allow."""
