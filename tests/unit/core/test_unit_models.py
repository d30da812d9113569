# tests/unit/core/test_models.py — v2
"""Tests for core/models.py — field addresses, tasks and run reports.

Also covers version.py import validation.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from modelsync.core.models import (
    DescriptionTask,
    EnrichmentRunResult,
    FieldAddress,
    FieldKind,
    TranslationTask,
    VersionedDocument,
)


class TestFieldAddress:
    def test_task_key_replaces_slashes(self):
        addr = FieldAddress(
            kind=FieldKind.VARIANT_DESCRIPTION, producer="Meta",
            series="Llama/3", variant="70B", language="tr",
        )
        assert addr.task_key() == "variant_description-Meta-Llama_3-70B-tr-description"

    def test_task_key_series_level(self):
        addr = FieldAddress(kind=FieldKind.SERIES_DESCRIPTION, producer="OpenAI", series="GPT-4o", language="fr")
        assert addr.task_key() == "series_description-OpenAI-GPT-4o-series-fr-description"

    def test_display_path_manual(self):
        addr = FieldAddress(
            kind=FieldKind.MANUAL_DETAIL, producer="Vertex", series="m1",
            variant="Default", language="zh", field="summary",
        )
        assert addr.display_path() == "Vertex/m1/Default/details.zh.summary"

    def test_frozen(self):
        addr = FieldAddress(kind=FieldKind.SERIES_DESCRIPTION, producer="p", series="s", language="tr")
        with pytest.raises(ValidationError):
            addr.language = "fr"


class TestTasks:
    def test_series_key(self):
        assert DescriptionTask(producer="Mistral", series="Large").series_key == "Mistral/Large"

    def test_verification_task(self):
        addr = FieldAddress(kind=FieldKind.SERIES_DESCRIPTION, producer="p", series="s", language="en")
        task = TranslationTask(address=addr, english_text="x", source_hash="h78")
        assert task.is_verification
        assert task.language == "en"


class TestReports:
    def test_versioned_document_exists(self):
        assert not VersionedDocument().exists
        assert VersionedDocument(data={}, version="v").exists

    @pytest.mark.parametrize("outcome,success", [
        ("committed", True), ("no_changes", True), ("conflict_aborted", False), ("lock_failed", False),
    ])
    def test_run_result_success(self, outcome, success):
        assert EnrichmentRunResult(op_id="op", outcome=outcome).success is success

    def test_run_result_rejects_unknown_outcome(self):
        with pytest.raises(ValidationError):
            EnrichmentRunResult(op_id="op", outcome="exploded")


class TestVersion:
    def test_version_importable(self):
        from modelsync.version import __version__
        assert isinstance(__version__, str)
