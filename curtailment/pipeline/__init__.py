"""Per-date orchestration for the curtailment ledger.

Provides the DatePipeline class that executes reconcile -> mining -> persist
for one settlement date, or for a range of dates with bounded concurrency.

Usage::

    from curtailment.pipeline import DatePipeline
    result = await DatePipeline(reconciler, mining_service).run(date(2025, 3, 4))
"""

from curtailment.pipeline.date_pipeline import DatePipeline, PipelineResult

__all__ = [
    "DatePipeline",
    "PipelineResult",
]
