"""Orchestration components.

This package intentionally avoids importing ``shotgen.orchestrator.pipeline``
at module import time: the schemas import ``retry_policy`` from here, and the
pipeline imports the schemas.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shotgen.orchestrator.pipeline import (
        GenerationOrchestrator,
        OrchestratorConfig,
        summarize_results,
    )

__all__ = ["GenerationOrchestrator", "OrchestratorConfig", "summarize_results"]


def __getattr__(name: str):
    """Lazily expose orchestrator symbols without eager pipeline imports."""
    if name in __all__:
        from shotgen.orchestrator.pipeline import (
            GenerationOrchestrator,
            OrchestratorConfig,
            summarize_results,
        )

        mapping = {
            "GenerationOrchestrator": GenerationOrchestrator,
            "OrchestratorConfig": OrchestratorConfig,
            "summarize_results": summarize_results,
        }
        return mapping[name]
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
