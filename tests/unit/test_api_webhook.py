"""Unit tests for the GitHub webhook receiver resource.

Usage
-----
Run with pytest::

    pytest tests/unit/test_api_webhook.py

"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus
from unittest import mock

import falcon.testing
import pytest
from sqlalchemy import select

from crossbow.api.app import AppDependencies, create_app
from crossbow.api.webhooks.resources import MAX_BODY_BYTES
from crossbow.pipeline import (
    ErrorKind,
    IngestionOutcome,
    OutcomeKind,
    WebhookPipeline,
    WebhookRequest,
)
from crossbow.silver import Commit, ExtractionStatus
from crossbow.silver.extraction import EventKind, ExtractionResult
from tests.helpers.github_events import (
    TEST_SECRET,
    push_commit,
    push_payload,
    signed_body,
)

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

_HEADERS = {
    "X-GitHub-Event": "push",
    "X-GitHub-Delivery": "72d3162e-cc78-11e3-81ab-4c9367dc0958",
    "X-Hub-Signature-256": "sha256=" + "a" * 64,
    "Content-Type": "application/json",
}


@pytest.fixture
def pipeline() -> mock.MagicMock:
    """Provide a pipeline double whose outcome each test chooses."""
    return mock.create_autospec(WebhookPipeline, instance=True)


@pytest.fixture
def client(pipeline: mock.MagicMock) -> falcon.testing.TestClient:
    """Build a test client exposing only the webhook route."""
    return falcon.testing.TestClient(create_app(AppDependencies(pipeline=pipeline)))


class TestWebhookResource:
    """Tests for mapping ingestion outcomes onto HTTP responses."""

    def test_passes_raw_body_and_headers(
        self, client: falcon.testing.TestClient, pipeline: mock.MagicMock
    ) -> None:
        """The pipeline receives the exact bytes and GitHub headers."""
        pipeline.handle.return_value = IngestionOutcome(
            OutcomeKind.ACCEPTED, delivery_id="d", raw_event_id=1
        )
        body = b'{"zen":  "Half measures are as bad as nothing at all."}'

        client.simulate_post("/webhooks/github", body=body, headers=_HEADERS)

        pipeline.handle.assert_awaited_once_with(
            WebhookRequest(
                raw_body=body,
                event_type="push",
                delivery_id=_HEADERS["X-GitHub-Delivery"],
                signature=_HEADERS["X-Hub-Signature-256"],
            )
        )

    def test_accepted_delivery_returns_200(
        self, client: falcon.testing.TestClient, pipeline: mock.MagicMock
    ) -> None:
        """Accepted deliveries report the raw event and extraction status."""
        pipeline.handle.return_value = IngestionOutcome(
            OutcomeKind.ACCEPTED,
            delivery_id="d-1",
            raw_event_id=7,
            extraction=ExtractionResult(
                raw_event_id=7,
                kind=EventKind.PUSH,
                status=ExtractionStatus.PROCESSED,
                commits=1,
            ),
        )

        result = client.simulate_post("/webhooks/github", body=b"{}", headers=_HEADERS)

        assert result.status_code == HTTPStatus.OK
        assert result.json == {
            "status": "accepted",
            "delivery_id": "d-1",
            "event_id": 7,
            "extraction": "processed",
        }

    def test_failed_extraction_still_returns_200(
        self, client: falcon.testing.TestClient, pipeline: mock.MagicMock
    ) -> None:
        """Data-quality failures do not surface as HTTP errors."""
        pipeline.handle.return_value = IngestionOutcome(
            OutcomeKind.ACCEPTED,
            delivery_id="d-1",
            raw_event_id=7,
            error_kind=ErrorKind.EXTRACTION,
            extraction=ExtractionResult(
                raw_event_id=7,
                kind=EventKind.ISSUES,
                status=ExtractionStatus.FAILED,
                error="bad payload",
            ),
        )

        result = client.simulate_post("/webhooks/github", body=b"{}", headers=_HEADERS)

        assert result.status_code == HTTPStatus.OK
        assert result.json["extraction"] == "failed"

    @pytest.mark.parametrize(
        ("kind", "status"),
        [
            (OutcomeKind.DUPLICATE, HTTPStatus.OK),
            (OutcomeKind.UNAUTHORIZED, HTTPStatus.UNAUTHORIZED),
            (OutcomeKind.BAD_REQUEST, HTTPStatus.BAD_REQUEST),
            (OutcomeKind.STORAGE_FAILURE, HTTPStatus.SERVICE_UNAVAILABLE),
        ],
    )
    def test_outcome_status_mapping(
        self,
        client: falcon.testing.TestClient,
        pipeline: mock.MagicMock,
        kind: OutcomeKind,
        status: HTTPStatus,
    ) -> None:
        """Each outcome kind maps onto one HTTP status."""
        pipeline.handle.return_value = IngestionOutcome(
            kind, delivery_id="d-1", raw_event_id=1, message="nope"
        )

        result = client.simulate_post("/webhooks/github", body=b"{}", headers=_HEADERS)

        assert result.status_code == status

    def test_rejections_do_not_echo_payload(
        self, client: falcon.testing.TestClient, pipeline: mock.MagicMock
    ) -> None:
        """Error bodies carry a title and description only."""
        pipeline.handle.return_value = IngestionOutcome(
            OutcomeKind.UNAUTHORIZED, message="invalid or missing signature"
        )

        result = client.simulate_post(
            "/webhooks/github", body=b'{"secret": "payload"}', headers=_HEADERS
        )

        assert result.json == {
            "title": "unauthorized",
            "description": "invalid or missing signature",
        }

    def test_oversized_body_is_refused_unread(
        self, client: falcon.testing.TestClient, pipeline: mock.MagicMock
    ) -> None:
        """Declared lengths above the GitHub cap answer 413."""
        headers = _HEADERS | {"Content-Length": str(MAX_BODY_BYTES + 1)}

        result = client.simulate_post("/webhooks/github", body=b"{}", headers=headers)

        assert result.status_code == HTTPStatus.REQUEST_ENTITY_TOO_LARGE
        pipeline.handle.assert_not_awaited()

    def test_get_is_not_allowed(self, client: falcon.testing.TestClient) -> None:
        """The receiver only accepts POST."""
        result = client.simulate_get("/webhooks/github")
        assert result.status_code == HTTPStatus.METHOD_NOT_ALLOWED


@pytest.mark.asyncio
async def test_signed_push_round_trip(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """A signed push over HTTP is acknowledged, then deduplicated."""
    app = create_app(
        AppDependencies(
            session_factory=session_factory,
            pipeline=WebhookPipeline(TEST_SECRET, session_factory),
        )
    )
    body, signature = signed_body(push_payload([push_commit("abc")]))
    headers = _HEADERS | {"X-Hub-Signature-256": signature}

    async with falcon.testing.ASGIConductor(app) as conductor:
        first = await conductor.simulate_post(
            "/webhooks/github", body=body, headers=headers
        )
        second = await conductor.simulate_post(
            "/webhooks/github", body=body, headers=headers
        )
        forged = await conductor.simulate_post(
            "/webhooks/github",
            body=body.replace(b"abc", b"abd"),
            headers=headers | {"X-GitHub-Delivery": "other"},
        )

    assert first.status_code == HTTPStatus.OK
    assert first.json["status"] == "accepted"
    assert first.json["extraction"] == "processed"
    assert second.status_code == HTTPStatus.OK
    assert second.json["status"] == "duplicate"
    assert second.json["event_id"] == first.json["event_id"]
    assert forged.status_code == HTTPStatus.UNAUTHORIZED

    async with session_factory() as session:
        shas = list(await session.scalars(select(Commit.sha)))
    assert shas == ["abc"]
