"""Tests for the shared error taxonomy."""

from pathlib import Path

import pytest

from kb_common.errors import (
    ClusterSetupError,
    DiagnosticError,
    KBError,
    WorkloadError,
    error_to_payload,
    normalize_context,
)

pytestmark = pytest.mark.unit_common


def test_context_is_made_json_friendly():
    context = normalize_context({"path": Path("/tmp/x"), "argv": ("a", 1), "nested": {"p": Path("y")}})
    assert context == {"path": "/tmp/x", "argv": ["a", 1], "nested": {"p": "y"}}


def test_cause_is_chained():
    cause = OSError("disk full")
    err = DiagnosticError("thread-dump failed", context={"tool": "thread-dump"}, cause=cause)
    assert err.__cause__ is cause
    assert err.error_type == "DiagnosticError"
    assert err.to_dict() == {
        "type": "DiagnosticError",
        "message": "thread-dump failed",
        "context": {"tool": "thread-dump"},
    }


@pytest.mark.parametrize("cls", [ClusterSetupError, WorkloadError, DiagnosticError])
def test_subclasses_share_base(cls):
    assert issubclass(cls, KBError)


def test_error_to_payload():
    payload = error_to_payload(WorkloadError("pool rejected", context={"submitted": 2}))
    assert payload == {
        "error_type": "WorkloadError",
        "error": "pool rejected",
        "error_context": {"submitted": 2},
    }
