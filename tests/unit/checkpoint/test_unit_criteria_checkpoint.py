# tests/unit/checkpoint/test_unit_criteria_checkpoint.py — v1
"""Tests for checkpoint/criteria_checkpoint_manager.py."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from aiscan.checkpoint.criteria_checkpoint_manager import CriteriaCheckpointManager
from aiscan.checkpoint.models import (
    CriteriaCheckpoint,
    IssueEnhancement,
    IssueEnhancementResult,
)
from aiscan.core.errors import CheckpointNotFoundError


@pytest.fixture
def saved(criteria_manager):
    """Factory persisting a fresh checkpoint for a scan."""

    async def _save(scan_id: str = "scan-1", total_batches: int = 4) -> CriteriaCheckpoint:
        cp = criteria_manager.init_checkpoint(scan_id, "https://example.com", "AA", total_batches)
        await criteria_manager.save_checkpoint(cp)
        return cp

    return _save


class TestInitCheckpoint:
    def test_fields(self, criteria_manager):
        cp = criteria_manager.init_checkpoint("scan-1", "https://example.com", "AA", 3)
        assert cp.completed_batches == []
        assert cp.partial_verifications == []
        assert cp.issue_enhancement_complete is False
        assert cp.tokens_used == 0

    def test_not_written(self, criteria_manager):
        criteria_manager.init_checkpoint("scan-1", "https://example.com", "AA", 3)
        assert not criteria_manager.checkpoint_path("scan-1").exists()

    def test_rejects_empty_scan_id(self, criteria_manager):
        with pytest.raises(ValidationError):
            criteria_manager.init_checkpoint("", "https://example.com", "AA", 3)


class TestPaths:
    def test_one_file_per_scan(self, criteria_manager):
        assert criteria_manager.checkpoint_path("abc").name == "abc.json"

    def test_separators_sanitized(self, criteria_manager):
        path = criteria_manager.checkpoint_path("a/b\\c")
        assert path.parent == criteria_manager.checkpoint_dir
        assert path.name == "a_b_c.json"


class TestGetCheckpoint:
    @pytest.mark.asyncio
    async def test_missing(self, criteria_manager):
        assert await criteria_manager.get_checkpoint("nope") is None

    @pytest.mark.asyncio
    async def test_corrupt(self, criteria_manager):
        path = criteria_manager.checkpoint_path("scan-1")
        path.parent.mkdir(parents=True)
        path.write_text("not json", encoding="utf-8")
        assert await criteria_manager.get_checkpoint("scan-1") is None

    @pytest.mark.asyncio
    async def test_roundtrip(self, criteria_manager, saved):
        await saved()
        loaded = await criteria_manager.get_checkpoint("scan-1")
        assert loaded.url == "https://example.com"
        assert loaded.total_batches == 4

    @pytest.mark.asyncio
    async def test_camelcase_on_disk(self, criteria_manager, saved):
        await saved()
        data = json.loads(criteria_manager.checkpoint_path("scan-1").read_text(encoding="utf-8"))
        assert {"scanId", "wcagLevel", "totalBatches", "completedBatches"} <= data.keys()


class TestMarkBatchComplete:
    @pytest.mark.asyncio
    async def test_records_batch(self, criteria_manager, saved, sample_verifications):
        await saved()
        cp = await criteria_manager.mark_batch_complete("scan-1", 2, sample_verifications, 800)

        assert cp.completed_batches == [2]
        assert len(cp.partial_verifications) == 2
        assert cp.tokens_used == 800

        reloaded = await criteria_manager.get_checkpoint("scan-1")
        assert reloaded.completed_batches == [2]
        assert reloaded.partial_verifications[1].related_issue_ids == ["issue-001"]

    @pytest.mark.asyncio
    async def test_batches_kept_sorted_and_unique(self, criteria_manager, saved):
        await saved()
        for n in (3, 0, 3, 1):
            await criteria_manager.mark_batch_complete("scan-1", n, [], 10)

        cp = await criteria_manager.get_checkpoint("scan-1")
        assert cp.completed_batches == [0, 1, 3]
        assert cp.tokens_used == 40

    @pytest.mark.asyncio
    async def test_missing_checkpoint_raises(self, criteria_manager):
        with pytest.raises(CheckpointNotFoundError) as exc_info:
            await criteria_manager.mark_batch_complete("ghost", 0, [], 0)
        assert exc_info.value.scan_id == "ghost"


class TestIncompleteBatches:
    @pytest.mark.asyncio
    async def test_remaining(self, criteria_manager, saved):
        await saved(total_batches=4)
        await criteria_manager.mark_batch_complete("scan-1", 0, [], 0)
        cp = await criteria_manager.mark_batch_complete("scan-1", 2, [], 0)

        assert CriteriaCheckpointManager.get_incomplete_batches(cp) == [1, 3]
        assert CriteriaCheckpointManager.is_batch_complete(cp, 2) is True
        assert CriteriaCheckpointManager.is_batch_complete(cp, 1) is False

    def test_zero_batches(self, criteria_manager):
        cp = criteria_manager.init_checkpoint("s", "https://example.com", "A", 0)
        assert CriteriaCheckpointManager.get_incomplete_batches(cp) == []


class TestIssueEnhancement:
    @pytest.mark.asyncio
    async def test_stores_result_and_tokens(self, criteria_manager, saved):
        await saved()
        await criteria_manager.mark_batch_complete("scan-1", 0, [], 100)
        result = IssueEnhancementResult(
            ai_summary="Two contrast problems.",
            ai_remediation_plan="Darken text colors.",
            ai_enhancements=[
                IssueEnhancement(
                    issue_id="issue-001",
                    ai_explanation="Low contrast",
                    ai_fix_suggestion="Use #333",
                    ai_priority=1,
                )
            ],
            tokens_used=250,
        )

        cp = await criteria_manager.mark_issue_enhancement_complete("scan-1", result)

        assert cp.issue_enhancement_complete is True
        assert cp.tokens_used == 350
        reloaded = await criteria_manager.get_checkpoint("scan-1")
        assert reloaded.issue_enhancement_result.ai_enhancements[0].issue_id == "issue-001"

    @pytest.mark.asyncio
    async def test_without_result(self, criteria_manager, saved):
        await saved()
        cp = await criteria_manager.mark_issue_enhancement_complete("scan-1", None)
        assert cp.issue_enhancement_complete is True
        assert cp.issue_enhancement_result is None

    @pytest.mark.asyncio
    async def test_missing_checkpoint_raises(self, criteria_manager):
        with pytest.raises(CheckpointNotFoundError):
            await criteria_manager.mark_issue_enhancement_complete("ghost", None)


class TestClearCheckpoint:
    @pytest.mark.asyncio
    async def test_only_target_removed(self, criteria_manager, saved):
        await saved("scan-1")
        await saved("scan-2")

        await criteria_manager.clear_checkpoint("scan-1")

        assert await criteria_manager.get_checkpoint("scan-1") is None
        assert await criteria_manager.get_checkpoint("scan-2") is not None

    @pytest.mark.asyncio
    async def test_missing_is_fine(self, criteria_manager):
        await criteria_manager.clear_checkpoint("never-existed")
