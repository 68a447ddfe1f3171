"""Base Agent interface and error taxonomy for the shot-list generation engine.

This module defines the core Agent interface, the retry policy configuration
shared by every agent, and the exception hierarchy used to classify backend
failures. Every error carries a machine-readable ``error_code``; the retry
policy decides transient vs. fatal from that code alone.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional


class BackoffStrategy(Enum):
    """Retry backoff strategies"""
    EXPONENTIAL = "exponential"
    LINEAR = "linear"
    CONSTANT = "constant"


@dataclass
class RetryPolicy:
    """Retry policy configuration for agent execution

    Attributes:
        max_attempts: Maximum number of execution attempts (including initial attempt)
        backoff_strategy: Strategy for calculating retry delays
        base_delay_seconds: Base delay for backoff calculation
        max_delay_seconds: Maximum delay between retries (before jitter)
        retryable_errors: List of error codes that should trigger retry
        jitter_ratio: Upper bound of the random jitter, as a fraction of the delay
        retry_parse_errors: Whether unusable backend output is retried
    """
    max_attempts: int = 1
    backoff_strategy: BackoffStrategy = BackoffStrategy.EXPONENTIAL
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 60.0
    retryable_errors: List[str] = None
    jitter_ratio: float = 0.0
    retry_parse_errors: bool = False

    def __post_init__(self):
        if self.retryable_errors is None:
            self.retryable_errors = []
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.jitter_ratio < 0:
            raise ValueError(f"jitter_ratio cannot be negative, got {self.jitter_ratio}")


class AgentInput(ABC):
    """Base class for agent input data"""
    pass


class AgentOutput(ABC):
    """Base class for agent output data"""
    pass


class AgentExecutionError(Exception):
    """Exception raised for agent execution failures

    Attributes:
        error_code: Machine-readable error code
        message: Human-readable error message
        context: Additional context about the failure
    """

    kind = "AgentExecutionError"

    def __init__(self, error_code: str, message: str, context: Optional[Dict[str, Any]] = None):
        self.error_code = error_code
        self.message = message
        self.context = context or {}
        super().__init__(f"[{error_code}] {message}")


class _CodedError(AgentExecutionError):
    """Error with a fixed default error code."""

    default_code = "UNKNOWN"

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(error_code or self.default_code, message, context)


class InvalidBatchError(_CodedError):
    """Batch rejected by pre-flight validation; no backend call was made."""
    kind = "InvalidBatch"
    default_code = "INVALID_BATCH"


class ConfigurationError(_CodedError):
    """No backend can be resolved from the configuration."""
    kind = "ConfigurationError"
    default_code = "INVALID_CONFIGURATION"


class AuthenticationError(_CodedError):
    kind = "AuthenticationError"
    default_code = "AUTHENTICATION_FAILED"


class RateLimitedError(_CodedError):
    kind = "RateLimited"
    default_code = "API_RATE_LIMIT"


class ServerFaultError(_CodedError):
    kind = "ServerFault"
    default_code = "SERVER_FAULT"


class NetworkError(_CodedError):
    """Transport failure; timeouts use the ``API_TIMEOUT`` code."""
    kind = "NetworkError"
    default_code = "NETWORK_ERROR"


class MalformedRequestError(_CodedError):
    kind = "MalformedRequest"
    default_code = "MALFORMED_REQUEST"


class ParseError(_CodedError):
    """Backend returned content that is not a usable shot list."""
    kind = "ParseError"
    default_code = "PARSE_ERROR"


class MalformedResponseError(ParseError):
    """Backend response carried no text at all."""
    kind = "MalformedResponse"
    default_code = "MALFORMED_RESPONSE"


class RetriesExhaustedError(AgentExecutionError):
    """Raised when every attempt failed with a transient error.

    Attributes:
        last_error: The transient error raised by the final attempt
        attempts: Number of attempts made
    """

    kind = "RetriesExhausted"

    def __init__(self, last_error: AgentExecutionError, attempts: int):
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(
            "RETRIES_EXHAUSTED",
            f"Gave up after {attempts} attempts: {last_error}",
            {
                "attempts": attempts,
                "last_error_code": getattr(last_error, "error_code", "UNKNOWN"),
            }
        )


class Agent(ABC):
    """Base interface for all engine agents

    Each agent implements a single stage with explicit inputs, outputs, and
    failure modes.

    The agent interface provides three core methods:
    - execute(): Perform the agent's primary task
    - validate_input(): Verify input conforms to expected schema
    - get_retry_policy(): Define retry behavior for transient failures
    """

    @abstractmethod
    def execute(self, input_data: AgentInput) -> Any:
        """Execute the agent's primary task

        Args:
            input_data: Agent-specific input object conforming to expected schema

        Returns:
            Agent-specific output object

        Raises:
            AgentExecutionError: For unrecoverable failures
        """
        pass

    def validate_input(self, input_data: AgentInput) -> bool:
        """Validate input conforms to expected schema

        Note:
            This method should perform schema validation only, not business logic.
        """
        raise NotImplementedError(
            f"{self.__class__.__name__} must implement validate_input()"
        )

    def get_retry_policy(self) -> RetryPolicy:
        """Return retry policy for this agent

        Agents with deterministic failures should return a policy with
        max_attempts=1. Agents calling a backend should return a policy with
        exponential backoff.
        """
        return RetryPolicy(max_attempts=1)
