"""Segment Generator Agent: one segment through prompt, backend and parser.

This agent processes a single segment: it renders the prompt, issues the
backend call under the retry policy, and parses the response. Each attempt
holds one concurrency-gate slot for exactly the call-plus-parse span; backoff
sleeps happen outside the gate. Failures are captured in the returned
SegmentGenerationResult instead of being raised, so one segment can never
abort its siblings.
"""

import contextlib
import logging
import time
from typing import ContextManager, Optional

from shotgen.agents.backend import BackendAdapter
from shotgen.agents.base import Agent, AgentExecutionError, AgentInput, RetryPolicy
from shotgen.agents.prompt_builder import PromptBuilder
from shotgen.agents.response_parser import ResponseParser
from shotgen.orchestrator.retry_policy import (
    RetryContext,
    create_retry_policy,
    execute_with_retry,
)
from shotgen.schemas.results import ErrorInfo, SegmentGenerationResult
from shotgen.schemas.segment import GenerationOptions, SegmentRequest
from shotgen.schemas.shot_list import ShotListDescription


logger = logging.getLogger(__name__)


class SegmentGenerationInput(AgentInput):
    """Input for Segment Generator Agent.

    Attributes:
        segment: Segment to describe
        options: Options for this segment; ``segment_index`` is echoed back
    """

    def __init__(self, segment: SegmentRequest, options: GenerationOptions):
        self.segment = segment
        self.options = options


class SegmentGeneratorAgent(Agent):
    """Agent responsible for generating the shot list of one segment.

    The Segment Generator:
    - Renders the prompt with the Prompt Builder (once per segment)
    - Calls the backend adapter, retrying transient failures
    - Parses every response with the Response Parser inside the same attempt
    - Records attempts, backend identity and latency on the result
    """

    def __init__(
        self,
        backend: BackendAdapter,
        gate: Optional[ContextManager] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        parser: Optional[ResponseParser] = None,
        base_delay_seconds: float = 1.0,
        max_delay_seconds: float = 30.0,
        jitter_ratio: float = 0.25
    ):
        self.backend = backend
        self.gate = gate if gate is not None else contextlib.nullcontext()
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.parser = parser or ResponseParser()
        self.base_delay_seconds = base_delay_seconds
        self.max_delay_seconds = max_delay_seconds
        self.jitter_ratio = jitter_ratio

    def execute(self, input_data: SegmentGenerationInput) -> SegmentGenerationResult:
        """Generate the shot list for one segment.

        Args:
            input_data: SegmentGenerationInput

        Returns:
            SegmentGenerationResult (successful or carrying an ErrorInfo)

        Raises:
            AgentExecutionError: Only when the input itself is not valid
        """
        if not self.validate_input(input_data):
            raise AgentExecutionError(
                "INVALID_INPUT",
                "Input must be SegmentGenerationInput with segment and options",
                {"input_type": type(input_data).__name__}
            )

        segment = input_data.segment
        options = input_data.options
        segment_index = options.segment_index or 0
        policy = self.retry_policy_for(options)
        context_name = f"segment[{segment_index}]"
        retry_context = RetryContext(
            agent_name=context_name,
            attempt=0,
            max_attempts=policy.max_attempts
        )

        prompt_text = self.prompt_builder.build(segment, options)
        start_time = time.monotonic()

        def attempt() -> ShotListDescription:
            with self.gate:
                call_result = self.backend.call(prompt_text, options)
                return self.parser.parse(call_result, options.mode)

        try:
            shot_list = execute_with_retry(attempt, policy, context_name, retry_context)
        except Exception as e:
            latency_ms = (time.monotonic() - start_time) * 1000
            logger.debug(f"{context_name} failed: {e}")
            return SegmentGenerationResult(
                segment_index=segment_index,
                success=False,
                error=ErrorInfo.from_exception(e),
                backend_used=self.backend.kind,
                attempts=retry_context.attempt,
                latency_ms=latency_ms
            )

        latency_ms = (time.monotonic() - start_time) * 1000
        return SegmentGenerationResult(
            segment_index=segment_index,
            success=True,
            shot_list=shot_list,
            backend_used=self.backend.kind,
            attempts=retry_context.attempt,
            latency_ms=latency_ms
        )

    def validate_input(self, input_data: AgentInput) -> bool:
        """Validate input is SegmentGenerationInput with typed fields."""
        if not isinstance(input_data, SegmentGenerationInput):
            return False
        if not isinstance(input_data.segment, SegmentRequest):
            return False
        if not isinstance(input_data.options, GenerationOptions):
            return False
        return True

    def get_retry_policy(self) -> RetryPolicy:
        """Return the retry policy for default generation options."""
        return self.retry_policy_for(GenerationOptions())

    def retry_policy_for(self, options: GenerationOptions) -> RetryPolicy:
        """Retry policy for the given options (attempt bound and parse-retry flag)."""
        return create_retry_policy(
            max_attempts=options.max_retries,
            base_delay_seconds=self.base_delay_seconds,
            max_delay_seconds=self.max_delay_seconds,
            jitter_ratio=self.jitter_ratio,
            retry_parse_errors=options.retry_parse_errors
        )
