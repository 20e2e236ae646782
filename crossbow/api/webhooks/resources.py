"""GitHub webhook receiver resource.

Handles ``POST /webhooks/github``. The body is read as raw bytes and handed to
:class:`~crossbow.pipeline.WebhookPipeline` unparsed, since the signature
covers the exact byte sequence GitHub sent.

Usage
-----
Register the resource on the Falcon app::

    app.add_route("/webhooks/github", GithubWebhookResource(pipeline))

"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

from crossbow.pipeline import IngestionOutcome, OutcomeKind, WebhookRequest

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from crossbow.pipeline import WebhookPipeline

__all__ = ["MAX_BODY_BYTES", "GithubWebhookResource"]

# GitHub caps webhook payloads at 25 MB.
MAX_BODY_BYTES = 25 * 1024 * 1024

EVENT_HEADER = "X-GitHub-Event"
DELIVERY_HEADER = "X-GitHub-Delivery"
SIGNATURE_HEADER = "X-Hub-Signature-256"

_STATUS_BY_OUTCOME: dict[OutcomeKind, HTTPStatus] = {
    OutcomeKind.ACCEPTED: HTTPStatus.OK,
    OutcomeKind.DUPLICATE: HTTPStatus.OK,
    OutcomeKind.UNAUTHORIZED: HTTPStatus.UNAUTHORIZED,
    OutcomeKind.BAD_REQUEST: HTTPStatus.BAD_REQUEST,
    OutcomeKind.STORAGE_FAILURE: HTTPStatus.SERVICE_UNAVAILABLE,
}


def _serialize_outcome(outcome: IngestionOutcome) -> dict[str, typ.Any]:
    """Serialize an outcome without echoing payload content back."""
    if not outcome.acknowledged:
        return {
            "title": outcome.kind,
            "description": outcome.message,
        }

    media: dict[str, typ.Any] = {
        "status": outcome.kind,
        "delivery_id": outcome.delivery_id,
        "event_id": outcome.raw_event_id,
    }
    if outcome.extraction is not None:
        media["extraction"] = outcome.extraction.status
    return media


class GithubWebhookResource:
    """Accept signed GitHub deliveries.

    Acknowledged deliveries (fresh or duplicate) answer 200 whatever the
    extraction outcome, so GitHub does not disable the hook over data-quality
    problems. Storage failures answer 503 so GitHub redelivers.
    """

    def __init__(self, pipeline: WebhookPipeline) -> None:
        """Store the ingestion pipeline handling each delivery."""
        self._pipeline = pipeline

    async def on_post(self, req: Request, resp: Response) -> None:
        """Handle POST /webhooks/github requests.

        Parameters
        ----------
        req
            Falcon request carrying the raw body and GitHub headers.
        resp
            Falcon response populated from the ingestion outcome.

        """
        if req.content_length is not None and req.content_length > MAX_BODY_BYTES:
            resp.status = HTTPStatus.REQUEST_ENTITY_TOO_LARGE
            resp.media = {
                "title": "Payload too large",
                "description": f"body exceeds {MAX_BODY_BYTES} bytes",
            }
            return

        raw_body = await req.stream.read()
        outcome = await self._pipeline.handle(
            WebhookRequest(
                raw_body=raw_body,
                event_type=req.get_header(EVENT_HEADER),
                delivery_id=req.get_header(DELIVERY_HEADER),
                signature=req.get_header(SIGNATURE_HEADER),
            )
        )
        resp.status = _STATUS_BY_OUTCOME[outcome.kind]
        resp.media = _serialize_outcome(outcome)
