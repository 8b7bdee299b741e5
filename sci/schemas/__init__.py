from sci.schemas.webhooks import (
    PullRequestEvent,
    PushEvent,
    UnknownEvent,
    WebhookEvent,
    parse_webhook,
)

__all__ = [
    "PullRequestEvent",
    "PushEvent",
    "UnknownEvent",
    "WebhookEvent",
    "parse_webhook",
]
