"""Tests for data models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError
from starlette import status as st_status

from router_ddns.models import (
    CredentialRecord,
    HostnameResult,
    HostnameStatus,
    NicUpdateResponse,
    OutcomeStatus,
    UpdateOutcome,
)


def _outcome(*statuses: HostnameStatus) -> UpdateOutcome:
    return UpdateOutcome(
        ip="203.0.113.7",
        results=[
            HostnameResult(hostname=f"h{i}.example.com", status=status)
            for i, status in enumerate(statuses)
        ],
    )


class TestHostnameStatus:
    """Tests for HostnameStatus enum."""

    def test_status_values(self):
        assert HostnameStatus.UPDATED == "updated"
        assert HostnameStatus.UNCHANGED == "unchanged"
        assert HostnameStatus.UNAUTHORIZED == "unauthorized"
        assert HostnameStatus.FAILED == "failed"


class TestCredentialRecord:
    """Tests for CredentialRecord model."""

    def test_has_domain(self):
        record = CredentialRecord(
            username="home1",
            password_hash="$2b$04$hash",
            domains=frozenset({"a.example.com"}),
        )
        assert record.has_domain("a.example.com")
        assert not record.has_domain("b.example.com")

    def test_record_is_frozen(self):
        record = CredentialRecord(
            username="home1",
            password_hash="$2b$04$hash",
            domains=frozenset({"a.example.com"}),
        )
        with pytest.raises(ValidationError):
            record.username = "other"


class TestUpdateOutcome:
    """Tests for overall status derivation."""

    @pytest.mark.parametrize(
        ("statuses", "expected"),
        [
            ((HostnameStatus.UPDATED,), OutcomeStatus.SUCCESS),
            ((HostnameStatus.UNCHANGED,), OutcomeStatus.SUCCESS),
            ((HostnameStatus.UPDATED, HostnameStatus.UNCHANGED), OutcomeStatus.SUCCESS),
            ((HostnameStatus.UNAUTHORIZED,), OutcomeStatus.UNAUTHORIZED),
            (
                (HostnameStatus.UNAUTHORIZED, HostnameStatus.UNAUTHORIZED),
                OutcomeStatus.UNAUTHORIZED,
            ),
            ((HostnameStatus.FAILED,), OutcomeStatus.FAILED),
            ((HostnameStatus.UPDATED, HostnameStatus.UNAUTHORIZED), OutcomeStatus.PARTIAL),
            ((HostnameStatus.UNCHANGED, HostnameStatus.FAILED), OutcomeStatus.PARTIAL),
            ((HostnameStatus.UNAUTHORIZED, HostnameStatus.FAILED), OutcomeStatus.PARTIAL),
        ],
    )
    def test_status(self, statuses, expected):
        assert _outcome(*statuses).status == expected

    def test_get(self):
        outcome = _outcome(HostnameStatus.UPDATED, HostnameStatus.FAILED)
        assert outcome.get("h0.example.com") == HostnameStatus.UPDATED
        assert outcome.get("h1.example.com") == HostnameStatus.FAILED
        assert outcome.get("missing.example.com") is None


class TestNicUpdateResponse:
    """Tests for NicUpdateResponse.from_outcome."""

    def test_success(self):
        response = NicUpdateResponse.from_outcome(
            _outcome(HostnameStatus.UPDATED, HostnameStatus.UNCHANGED),
        )
        assert response.status == "success"
        assert response.code == st_status.HTTP_200_OK
        assert response.ip == "203.0.113.7"
        assert response.message == "1 updated, 1 unchanged"

    def test_partial(self):
        response = NicUpdateResponse.from_outcome(
            _outcome(HostnameStatus.UPDATED, HostnameStatus.UNAUTHORIZED),
        )
        assert response.status == "partial"
        assert response.code == st_status.HTTP_207_MULTI_STATUS
        assert [r.status for r in response.results] == [
            HostnameStatus.UPDATED,
            HostnameStatus.UNAUTHORIZED,
        ]

    def test_all_unauthorized(self):
        response = NicUpdateResponse.from_outcome(_outcome(HostnameStatus.UNAUTHORIZED))
        assert response.status == "error"
        assert response.code == st_status.HTTP_403_FORBIDDEN

    def test_all_failed(self):
        response = NicUpdateResponse.from_outcome(_outcome(HostnameStatus.FAILED))
        assert response.status == "error"
        assert response.code == st_status.HTTP_502_BAD_GATEWAY

    def test_success_marker_in_json(self):
        response = NicUpdateResponse.from_outcome(_outcome(HostnameStatus.UPDATED))
        assert '"status":"success"' in response.model_dump_json()
