import json
from typing import Any, assert_never
from urllib.parse import parse_qs

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from sci.context import SciContext, get_context
from sci.models import RunRequest
from sci.schemas import (
    PullRequestEvent,
    PushEvent,
    UnknownEvent,
    WebhookEvent,
    parse_webhook,
)
from sci.utils.github import verify_signature

logger = structlog.get_logger(__name__)

webhooks_router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])

PR_ACTIONS = ("opened", "synchronize")
BRANCH_PREFIX = "refs/heads/"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def select_run(event: WebhookEvent) -> RunRequest | None:
    """Return the run a webhook event asks for, or None if it is ignored."""
    match event:
        case PullRequestEvent():
            log = logger.bind(
                repo=event.repository.full_name,
                pr_number=event.pull_request.number,
                actor=event.sender.login,
                action=event.action,
            )
            if event.action not in PR_ACTIONS:
                log.info("Ignoring pull request action")
                return None
            log.info("Pull request", sha=event.sha)
            return RunRequest(
                repo=event.repository.full_name,
                commit=event.sha,
                actor=event.sender.login,
                ref=event.ref,
            )
        case PushEvent(head_commit=None):
            logger.info(
                "Ignoring push deleting a ref",
                repo=event.repository.full_name,
                ref=event.ref,
            )
            return None
        case PushEvent():
            log = logger.bind(
                repo=event.repository.full_name,
                ref=event.ref,
                actor=event.sender.login,
            )
            if not event.ref.startswith(BRANCH_PREFIX):
                log.info("Ignoring push to a non-branch ref")
                return None
            log.info("Push", sha=event.head_commit.id)
            return RunRequest(
                repo=event.repository.full_name,
                commit=event.head_commit.id,
                actor=event.sender.login,
                ref=event.ref,
            )
        case UnknownEvent():
            logger.info(
                "Ignoring hook type",
                event_type=event.event_type,
                repo=event.repository,
                actor=event.actor,
            )
            return None
        case _:
            assert_never(event)


def decode_payload(content_type: str | None, body: bytes) -> Any:
    """Decode a delivery sent as JSON or form-encoded with a payload field."""
    if (content_type or "").startswith(FORM_CONTENT_TYPE):
        try:
            body = parse_qs(body.decode("utf-8"), strict_parsing=True)["payload"][0]
        except KeyError:
            raise ValueError("form-encoded delivery without a payload field")
    return json.loads(body)


@webhooks_router.post("/github")
async def receive_github_webhook(
    request: Request,
    context: SciContext = Depends(get_context),
    x_github_event: str | None = Header(None, description="GitHub event type"),
    x_hub_signature_256: str | None = Header(
        None, description="GitHub webhook signature"
    ),
    x_hub_signature: str | None = Header(
        None, description="Legacy sha1 GitHub webhook signature"
    ),
):
    body = await request.body()
    if not verify_signature(
        context.config.webhook_secret, body, x_hub_signature_256, x_hub_signature
    ):
        logger.warning("Invalid webhook signature", event_type=x_github_event)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid signature.",
        )

    if x_github_event == "ping":
        return {}

    if not x_github_event:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing X-GitHub-Event header.",
        )

    try:
        event = parse_webhook(
            x_github_event, decode_payload(request.headers.get("content-type"), body)
        )
    except ValueError as e:
        logger.warning(
            "Invalid webhook payload", event_type=x_github_event, error=str(e)
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payload."
        )

    run_request = select_run(event)
    if run_request is not None:
        context.queue.submit(run_request)

    return {}
