# src/checkpoint/models.py — v1
"""Checkpoint domain models: run-level Checkpoint and per-scan CriteriaCheckpoint."""

from __future__ import annotations

from pydantic import Field

from aiscan.core.models import AiCriteriaVerification, CamelModel, UtcDatetime, WcagLevel


class Checkpoint(CamelModel):
    """Progress of one resumable run over an input file.

    ``processed_scan_ids`` keeps flush order; duplicates across runs are
    tolerated.
    """

    input_file: str
    processed_scan_ids: list[str] = Field(default_factory=list)
    last_batch: int = 0
    last_mini_batch: int = 0
    started_at: UtcDatetime
    updated_at: UtcDatetime


class IssueEnhancement(CamelModel):
    """AI enrichment of a single detected issue."""

    issue_id: str
    ai_explanation: str
    ai_fix_suggestion: str
    ai_priority: int


class IssueEnhancementResult(CamelModel):
    """Outcome of the issue enhancement step that follows criteria verification."""

    ai_summary: str
    ai_remediation_plan: str
    ai_enhancements: list[IssueEnhancement] = Field(default_factory=list)
    tokens_used: int | None = None


class CriteriaCheckpoint(CamelModel):
    """Per-scan progress through the criteria verification batches."""

    scan_id: str = Field(min_length=1)
    url: str = Field(min_length=1)
    wcag_level: WcagLevel
    total_batches: int = Field(ge=0)
    completed_batches: list[int] = Field(default_factory=list)
    partial_verifications: list[AiCriteriaVerification] = Field(default_factory=list)
    issue_enhancement_complete: bool = False
    issue_enhancement_result: IssueEnhancementResult | None = None
    started_at: UtcDatetime
    updated_at: UtcDatetime
    tokens_used: int = 0
