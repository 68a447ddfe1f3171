"""Structured JSON logger for batch observability.

This module provides structured logging functionality that writes JSON-formatted
log entries to generation.log in the output directory. Each log entry is a single
JSON object on one line, making it easy to parse and analyze.

Log Event Types:
- batch_start: Batch accepted and dispatched
- segment_start: Segment handed to the generator
- segment_complete: Segment produced a shot list
- segment_failure: Segment finished with an error
- batch_complete: Every segment resolved
- batch_error: Batch rejected before dispatch

Segments finish on worker threads, so writes are serialised with a lock.
"""

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional


LOG_FILE_NAME = "generation.log"


class StructuredJSONLogger:
    """Structured JSON logger that writes to generation.log.

    Each log entry follows the format:

    {
        "event": "segment_start|segment_complete|segment_failure|...",
        "timestamp": "ISO8601",
        ...additional fields based on event type...
    }

    The logger maintains both a file handler for JSON logs and a console handler
    for human-readable logs.
    """

    def __init__(self, output_directory: Optional[str] = None):
        """Initialize the structured JSON logger.

        Args:
            output_directory: Directory where generation.log will be written.
                            If None, only console logging is enabled.
        """
        self.output_directory = output_directory
        self.log_file_path = None
        self.json_file_handle = None
        self._write_lock = threading.Lock()

        if output_directory:
            self._setup_log_file(output_directory)

        self.logger = logging.getLogger(__name__)
        if not self.logger.handlers:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(logging.INFO)
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            console_handler.setFormatter(formatter)
            self.logger.addHandler(console_handler)
            self.logger.setLevel(logging.INFO)

    def _setup_log_file(self, output_directory: str) -> None:
        """Open generation.log for appending, creating the directory if needed."""
        output_path = Path(output_directory)
        output_path.mkdir(parents=True, exist_ok=True)

        self.log_file_path = output_path / LOG_FILE_NAME
        self.json_file_handle = open(self.log_file_path, 'a', encoding='utf-8')

    def _write_json_log(self, log_entry: Dict[str, Any]) -> None:
        """Write a JSON log entry to generation.log."""
        json_line = json.dumps(log_entry, ensure_ascii=False, default=str)
        with self._write_lock:
            if self.json_file_handle:
                self.json_file_handle.write(json_line + '\n')
                self.json_file_handle.flush()

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    def log_batch_start(
        self,
        batch_size: int,
        backend: str,
        config: Dict[str, Any]
    ) -> None:
        """Log batch dispatch.

        Args:
            batch_size: Number of segments in the batch
            backend: Backend serving the batch
            config: Effective generation options
        """
        self._write_json_log({
            "event": "batch_start",
            "timestamp": self._now(),
            "batch_size": batch_size,
            "backend": backend,
            "config": config
        })
        self.logger.info(f"Starting batch of {batch_size} segments on {backend}")

    def log_segment_start(self, segment_index: int, input_summary: str) -> None:
        """Log segment start event.

        Args:
            segment_index: Position of the segment in the batch
            input_summary: Brief summary of the segment
        """
        self._write_json_log({
            "event": "segment_start",
            "segment_index": segment_index,
            "timestamp": self._now(),
            "input_summary": input_summary
        })
        self.logger.info(f"Starting segment {segment_index}: {input_summary}")

    def log_segment_complete(
        self,
        segment_index: int,
        duration_ms: float,
        shot_count: int,
        attempts: int
    ) -> None:
        """Log segment success event.

        Args:
            segment_index: Position of the segment in the batch
            duration_ms: Time spent on the segment, retries included
            shot_count: Number of shots in the parsed shot list
            attempts: Backend attempts used
        """
        self._write_json_log({
            "event": "segment_complete",
            "segment_index": segment_index,
            "timestamp": self._now(),
            "duration_ms": round(duration_ms, 2),
            "shot_count": shot_count,
            "attempts": attempts,
            "status": "SUCCESS"
        })
        self.logger.info(
            f"Completed segment {segment_index} in {duration_ms:.2f}ms: "
            f"{shot_count} shots, {attempts} attempt(s)"
        )

    def log_segment_failure(
        self,
        segment_index: int,
        error_message: str,
        error_code: str,
        attempts: int,
        duration_ms: Optional[float] = None
    ) -> None:
        """Log segment failure event.

        Args:
            segment_index: Position of the segment in the batch
            error_message: Human-readable error message
            error_code: Machine-readable error code
            attempts: Backend attempts used
            duration_ms: Optional time spent on the segment
        """
        log_entry = {
            "event": "segment_failure",
            "segment_index": segment_index,
            "timestamp": self._now(),
            "error_message": error_message,
            "error_code": error_code,
            "attempts": attempts
        }

        if duration_ms is not None:
            log_entry["duration_ms"] = round(duration_ms, 2)

        self._write_json_log(log_entry)
        self.logger.error(
            f"Failed segment {segment_index} [{error_code}]: {error_message}"
        )

    def log_batch_complete(
        self,
        duration_seconds: float,
        total_segments: int,
        successful_segments: int,
        total_attempts: int
    ) -> None:
        """Log batch completion with its success rate."""
        success_rate = successful_segments / total_segments if total_segments else 1.0
        status = "SUCCESS" if successful_segments == total_segments else (
            "PARTIAL_SUCCESS" if successful_segments else "FAILURE"
        )

        self._write_json_log({
            "event": "batch_complete",
            "timestamp": self._now(),
            "duration_seconds": round(duration_seconds, 2),
            "total_segments": total_segments,
            "successful_segments": successful_segments,
            "total_attempts": total_attempts,
            "success_rate": round(success_rate, 3),
            "status": status
        })
        self.logger.info(
            f"Batch completed with status {status} in {duration_seconds:.2f}s "
            f"({successful_segments}/{total_segments} segments)"
        )

    def log_batch_error(self, error_type: str, error_message: str) -> None:
        """Log a batch rejected before dispatch."""
        self._write_json_log({
            "event": "batch_error",
            "timestamp": self._now(),
            "error_type": error_type,
            "error_message": error_message
        })
        self.logger.error(f"Batch error: {error_message}")

    def close(self) -> None:
        """Close the log file handle."""
        with self._write_lock:
            if self.json_file_handle:
                self.json_file_handle.close()
                self.json_file_handle = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - ensures log file is closed."""
        self.close()
        return False
