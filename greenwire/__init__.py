"""
Environmental news batch pipeline: fetch, classify, score and track topics.
"""
from __future__ import annotations

from typing import Optional

from greenwire.models import PipelineSummary
from greenwire.oracle import Oracle
from greenwire.pipeline import BatchPipeline
from greenwire.settings import PipelineSettings, load_settings
from greenwire.store import TopicStore


def run_pipeline(
    settings: Optional[PipelineSettings] = None,
    oracle: Optional[Oracle] = None,
    store: Optional[TopicStore] = None,
) -> PipelineSummary:
    """Run one batch. Raises ConfigurationError when oracle credentials are missing."""
    return BatchPipeline(settings or load_settings(), oracle=oracle, store=store).run()


__all__ = ["BatchPipeline", "PipelineSettings", "PipelineSummary", "load_settings", "run_pipeline"]
