"""Generation Orchestrator for segment shot-list batches.

This module implements the orchestrator that turns a batch of segment requests
into a bounded-concurrency set of backend calls:
Prompt Builder → retry-wrapped (Backend Adapter → Response Parser), per segment.

The orchestrator handles:
- Pre-flight batch validation (no backend call is spent on an invalid batch)
- A concurrency gate shared by every segment of the batch
- Per-segment failure isolation
- Index-ordered aggregation of results
- Structured logging at each stage

Error Handling Strategy:
- **Abort**: InvalidBatch (pre-flight) and ConfigurationError (no backend
  resolvable) propagate to the caller before any segment is dispatched
- **Retry**: Transient failures (rate limits, timeouts, server faults, network
  errors) use exponential backoff with jitter, up to ``max_retries`` attempts
- **Continue**: Every other per-segment failure is captured in that segment's
  SegmentGenerationResult; siblings always run to completion
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import ValidationError

from shotgen.agents.backend import BackendAdapter, get_backend_adapter
from shotgen.agents.base import InvalidBatchError
from shotgen.agents.segment_generator import SegmentGenerationInput, SegmentGeneratorAgent
from shotgen.config import BackendSettings
from shotgen.orchestrator.concurrency import ConcurrencyGate
from shotgen.orchestrator.logger import StructuredJSONLogger
from shotgen.schemas.results import BatchReport, ErrorInfo, SegmentGenerationResult
from shotgen.schemas.segment import GenerationOptions, SegmentRequest


logger = logging.getLogger(__name__)

SegmentLike = Union[SegmentRequest, Dict[str, Any]]
OptionsLike = Union[GenerationOptions, Dict[str, Any], None]

_SUMMARY_CHARS = 60


@dataclass
class OrchestratorConfig:
    """Configuration for orchestrator execution.

    Attributes:
        default_concurrency: Gate size when the caller does not set one
        default_max_retries: Attempt bound when the caller does not set one
        base_delay_seconds: First retry delay
        max_delay_seconds: Cap on any single retry delay
        jitter_ratio: Upper bound of the random jitter, as a fraction of the delay
        log_directory: Directory for generation.log (console only when None)
    """
    default_concurrency: int = 3
    default_max_retries: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    jitter_ratio: float = 0.25
    log_directory: Optional[str] = None

    def default_options(self) -> GenerationOptions:
        return GenerationOptions(
            max_retries=self.default_max_retries,
            concurrency=self.default_concurrency
        )


class GenerationOrchestrator:
    """Batch front door of the shot-list engine.

    The backend is resolved once: either injected, or looked up from settings
    on first use and then reused. A per-batch ``backend`` option selects the
    other shared adapter without replacing the default.
    """

    def __init__(
        self,
        backend: Optional[BackendAdapter] = None,
        config: Optional[OrchestratorConfig] = None,
        settings: Optional[BackendSettings] = None
    ):
        self.backend = backend
        self.config = config or OrchestratorConfig()
        self.settings = settings

    def generate_batch(
        self,
        segments: Sequence[SegmentLike],
        options: OptionsLike = None
    ) -> List[SegmentGenerationResult]:
        """Generate shot lists for every segment of a batch.

        Args:
            segments: Segment requests (models or camelCase/snake_case dicts)
            options: Generation options for the whole batch

        Returns:
            One SegmentGenerationResult per segment, in input order

        Raises:
            InvalidBatchError: If the batch or options are invalid
            ConfigurationError: If no backend can be resolved
        """
        with StructuredJSONLogger(self.config.log_directory) as structured_logger:
            try:
                batch_options = self._validate_options(options)
                requests = self._validate_segments(segments)
                backend = self._resolve_backend(batch_options)
            except Exception as e:
                structured_logger.log_batch_error(
                    getattr(e, "kind", type(e).__name__),
                    str(e)
                )
                raise

            batch_start_time = time.monotonic()
            structured_logger.log_batch_start(
                batch_size=len(requests),
                backend=backend.backend_name,
                config=batch_options.model_dump(by_alias=True, mode="json", exclude_none=True)
            )

            gate = ConcurrencyGate(batch_options.concurrency)
            generator = self._build_generator(backend, gate)
            results: List[Optional[SegmentGenerationResult]] = [None] * len(requests)
            max_workers = min(batch_options.concurrency, len(requests))

            with ThreadPoolExecutor(
                max_workers=max_workers,
                thread_name_prefix="shotgen-segment"
            ) as executor:
                futures = {
                    executor.submit(
                        self._run_segment,
                        generator,
                        request,
                        batch_options.model_copy(update={"segment_index": index}),
                        structured_logger
                    ): index
                    for index, request in enumerate(requests)
                }
                for future in as_completed(futures):
                    results[futures[future]] = future.result()

            report = summarize_results(results)
            structured_logger.log_batch_complete(
                duration_seconds=time.monotonic() - batch_start_time,
                total_segments=report.total_segments,
                successful_segments=report.successful_segments,
                total_attempts=report.total_attempts
            )
            logger.info(
                f"Batch finished: {report.successful_segments}/{report.total_segments} "
                f"segments succeeded (peak in-flight calls: {gate.peak})"
            )

            return results

    def generate_segment(
        self,
        segment: SegmentLike,
        options: OptionsLike = None
    ) -> SegmentGenerationResult:
        """Generate the shot list for a single segment.

        ``options.segment_index`` is echoed back unchanged (0 when unset).
        Validation and configuration errors propagate as for a batch.
        """
        with StructuredJSONLogger(self.config.log_directory) as structured_logger:
            segment_options = self._validate_options(options)
            request = self._validate_segments([segment])[0]
            backend = self._resolve_backend(segment_options)

            if segment_options.segment_index is None:
                segment_options = segment_options.model_copy(update={"segment_index": 0})

            generator = self._build_generator(
                backend,
                ConcurrencyGate(segment_options.concurrency)
            )
            return self._run_segment(generator, request, segment_options, structured_logger)

    def _validate_options(self, options: OptionsLike) -> GenerationOptions:
        """Normalise options, filling unset fields from the orchestrator config."""
        defaults = self.config.default_options()
        if options is None:
            return defaults

        if isinstance(options, GenerationOptions):
            parsed = options
        elif isinstance(options, dict):
            try:
                parsed = GenerationOptions.model_validate(options)
            except ValidationError as e:
                raise InvalidBatchError(
                    "Invalid generation options",
                    {"errors": _validation_messages(e)}
                ) from e
        else:
            raise InvalidBatchError(
                "Options must be a GenerationOptions or a mapping",
                {"options_type": type(options).__name__}
            )

        updates = {
            name: getattr(defaults, name)
            for name in ("max_retries", "concurrency")
            if name not in parsed.model_fields_set
        }
        return parsed.model_copy(update=updates) if updates else parsed

    def _validate_segments(self, segments: Sequence[SegmentLike]) -> List[SegmentRequest]:
        """Validate every segment, reporting all invalid positions at once.

        Raises:
            InvalidBatchError: If the batch is empty or any segment is invalid
        """
        if segments is None or isinstance(segments, (str, bytes, dict)):
            raise InvalidBatchError(
                "Segments must be a list of segment requests",
                {"segments_type": type(segments).__name__}
            )

        segments = list(segments)
        if not segments:
            raise InvalidBatchError("Batch contains no segments", {"batch_size": 0})

        requests: List[SegmentRequest] = []
        invalid: List[Dict[str, Any]] = []

        for index, segment in enumerate(segments):
            if isinstance(segment, SegmentRequest):
                requests.append(segment)
                continue
            if not isinstance(segment, dict):
                invalid.append({
                    "index": index,
                    "errors": [f"expected an object, got {type(segment).__name__}"]
                })
                continue
            try:
                requests.append(SegmentRequest.model_validate(segment))
            except ValidationError as e:
                invalid.append({"index": index, "errors": _validation_messages(e)})

        if invalid:
            raise InvalidBatchError(
                f"{len(invalid)} of {len(segments)} segments are invalid",
                {"batch_size": len(segments), "invalid_segments": invalid}
            )

        return requests

    def _resolve_backend(self, options: GenerationOptions) -> BackendAdapter:
        """Pick the adapter serving this batch.

        Raises:
            ConfigurationError: If the requested or default backend is not configured
        """
        if options.backend is not None:
            if self.backend is not None and self.backend.kind == options.backend:
                return self.backend
            return get_backend_adapter(options.backend, self.settings)

        if self.backend is None:
            self.backend = get_backend_adapter(None, self.settings)
        return self.backend

    def _build_generator(
        self,
        backend: BackendAdapter,
        gate: ConcurrencyGate
    ) -> SegmentGeneratorAgent:
        return SegmentGeneratorAgent(
            backend,
            gate=gate,
            base_delay_seconds=self.config.base_delay_seconds,
            max_delay_seconds=self.config.max_delay_seconds,
            jitter_ratio=self.config.jitter_ratio
        )

    def _run_segment(
        self,
        generator: SegmentGeneratorAgent,
        request: SegmentRequest,
        options: GenerationOptions,
        structured_logger: StructuredJSONLogger
    ) -> SegmentGenerationResult:
        """Run one segment on a worker thread; never raises.

        A failed generation.log write is reported on the console and does not
        affect the segment's result.
        """
        segment_index = options.segment_index or 0
        try:
            structured_logger.log_segment_start(
                segment_index=segment_index,
                input_summary=_summarize_segment(request)
            )
        except OSError as e:
            logger.error(f"Could not log start of segment {segment_index}: {e}")

        try:
            result = generator.execute(SegmentGenerationInput(request, options))
        except Exception as e:
            logger.error(
                f"Segment {segment_index} raised unexpectedly: {e}",
                exc_info=True
            )
            result = SegmentGenerationResult(
                segment_index=segment_index,
                success=False,
                error=ErrorInfo.from_exception(e),
                backend_used=generator.backend.kind
            )

        try:
            if result.success:
                structured_logger.log_segment_complete(
                    segment_index=segment_index,
                    duration_ms=result.latency_ms or 0.0,
                    shot_count=len(result.shot_list.shots),
                    attempts=result.attempts
                )
            else:
                structured_logger.log_segment_failure(
                    segment_index=segment_index,
                    error_message=result.error.message,
                    error_code=result.error.code,
                    attempts=result.attempts,
                    duration_ms=result.latency_ms
                )
        except OSError as e:
            logger.error(f"Could not log outcome of segment {segment_index}: {e}")

        return result


def summarize_results(results: Sequence[SegmentGenerationResult]) -> BatchReport:
    """Aggregate per-segment outcomes into a BatchReport."""
    failed = [r.segment_index for r in results if not r.success]
    return BatchReport(
        total_segments=len(results),
        successful_segments=len(results) - len(failed),
        failed_segment_indices=failed,
        total_attempts=sum(r.attempts for r in results)
    )


def _summarize_segment(request: SegmentRequest) -> str:
    text = " ".join(request.scene_text.split())
    if len(text) > _SUMMARY_CHARS:
        text = text[:_SUMMARY_CHARS - 3] + "..."
    label = f"[{request.segment_id}] " if request.segment_id else ""
    return f"{label}{text} ({request.duration_seconds}s)"


def _validation_messages(error: ValidationError) -> List[str]:
    return [
        f"{'.'.join(str(loc) for loc in item['loc']) or '<root>'}: {item['msg']}"
        for item in error.errors()
    ]
