"""Общие фабрики и фикстуры для тестов circa."""

from __future__ import annotations

from circa.models.report import FailedTest, FailureReport
from circa.patterns.models import NewPattern, PatternMatch, PatternSnapshot
from circa.utils.fingerprint import generate_fingerprint


def make_failed_test(**overrides) -> FailedTest:
    """Фабрика FailedTest с разумными дефолтами."""
    defaults = {
        "testName": "Auth Test",
        "errorMessage": "401",
    }
    defaults.update(overrides)
    return FailedTest.model_validate(defaults)


def make_failure_report(**overrides) -> FailureReport:
    """Фабрика FailureReport с разумными дефолтами (camelCase, как шлёт репортер)."""
    defaults: dict = {
        "commitHash": "abc123def456",
        "branch": "main",
        "author": "dev@acme.io",
        "status": "failed",
        "failedTests": [{"testName": "Auth Test", "errorMessage": "401"}],
    }
    defaults.update(overrides)
    return FailureReport.model_validate(defaults)


def make_new_pattern(text: str = "NullPointerException at Service.java:42", **overrides) -> NewPattern:
    """Фабрика NewPattern: fingerprint строится из ``text``."""
    defaults: dict = {
        "scope": "project-1",
        "fingerprint": generate_fingerprint(text),
        "summary": text,
        "error_message": text,
        "test_name": "Service Test",
    }
    defaults.update(overrides)
    return NewPattern.model_validate(defaults)


def make_pattern_match(**overrides) -> PatternMatch:
    """Фабрика PatternMatch с разумными дефолтами."""
    pattern_overrides = overrides.pop("pattern", {})
    pattern: dict = {
        "summary": "Failed 1 test(s).",
        "error_message": "timeout",
        "test_name": "Checkout Test",
        "occurrence_count": 1,
    }
    pattern.update(pattern_overrides)
    defaults: dict = {
        "pattern_id": "p-1",
        "similarity": 0.9,
        "pattern": PatternSnapshot.model_validate(pattern),
    }
    defaults.update(overrides)
    return PatternMatch.model_validate(defaults)
