"""Agent implementations for shot-list generation.

Only the base contracts and the error taxonomy are re-exported here; the
backend, prompt, parser and generator modules are imported directly so that
schema modules can depend on the error types without import cycles.
"""

from .base import (
    Agent,
    AgentExecutionError,
    AgentInput,
    AgentOutput,
    AuthenticationError,
    BackoffStrategy,
    ConfigurationError,
    InvalidBatchError,
    MalformedRequestError,
    MalformedResponseError,
    NetworkError,
    ParseError,
    RateLimitedError,
    RetriesExhaustedError,
    RetryPolicy,
    ServerFaultError,
)

__all__ = [
    "Agent",
    "AgentInput",
    "AgentOutput",
    "RetryPolicy",
    "BackoffStrategy",
    "AgentExecutionError",
    "InvalidBatchError",
    "ConfigurationError",
    "AuthenticationError",
    "RateLimitedError",
    "ServerFaultError",
    "NetworkError",
    "MalformedRequestError",
    "ParseError",
    "MalformedResponseError",
    "RetriesExhaustedError",
]
