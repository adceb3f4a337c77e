"""Test ConsolidationSettings defaults, validation and environment overrides."""
import sys
from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from receipt_consensus.config import ConsolidationSettings


def test_defaults():
    settings = ConsolidationSettings()
    assert settings.similarity_threshold == 75
    assert settings.trustworthy_threshold == 40
    assert settings.max_group_size == 20
    assert settings.min_scans == 3
    assert settings.confidence_threshold == 90
    assert settings.stability_threshold == 50
    assert settings.stability_min_samples == 3
    assert settings.nearly_complete_threshold == 95
    assert settings.confirmation_quorum == 0.8
    assert settings.link_threshold == 90
    assert settings.low_noise_stddev == 10
    assert settings.scan_interval == timedelta(milliseconds=50)
    assert settings.scan_timeout == timedelta(seconds=20)
    assert settings.invalidate_interval == timedelta(seconds=2)
    assert settings.total_confirmations == 2
    assert settings.outlier_low_confidence == 35
    assert settings.outlier_min_samples == 3
    assert settings.outlier_max_candidates == 12
    assert settings.session_idle_timeout == timedelta(minutes=10)


def test_confirmation_min_size_is_clamped():
    assert ConsolidationSettings(max_group_size=20).confirmation_min_size == 8
    assert ConsolidationSettings(max_group_size=12).confirmation_min_size == 6
    assert ConsolidationSettings(max_group_size=4).confirmation_min_size == 4


@pytest.mark.parametrize("field,value", [
    ("similarity_threshold", 101),
    ("trustworthy_threshold", -1),
    ("confidence_threshold", 150),
    ("confirmation_quorum", 0),
    ("confirmation_quorum", 1.5),
    ("max_group_size", 0),
    ("scan_timeout_ms", 0),
    ("outlier_low_confidence", 101),
    ("outlier_max_candidates", 0),
    ("total_confirmations", 0),
])
def test_invalid_values_fail_fast(field, value):
    with pytest.raises(ValidationError):
        ConsolidationSettings(**{field: value})


def test_environment_override(monkeypatch):
    monkeypatch.setenv("RECEIPT_SIMILARITY_THRESHOLD", "80")
    monkeypatch.setenv("RECEIPT_SCAN_TIMEOUT_MS", "5000")
    settings = ConsolidationSettings()
    assert settings.similarity_threshold == 80
    assert settings.scan_timeout == timedelta(seconds=5)


def test_with_updates_wins_over_environment(monkeypatch):
    monkeypatch.setenv("RECEIPT_SIMILARITY_THRESHOLD", "80")
    base = ConsolidationSettings()
    updated = base.with_updates(similarity_threshold=70, min_scans=5)

    assert base.similarity_threshold == 80
    assert updated.similarity_threshold == 70
    assert updated.min_scans == 5
    assert updated.max_group_size == base.max_group_size

    with pytest.raises(ValidationError):
        base.with_updates(link_threshold=120)
