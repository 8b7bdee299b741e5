from typing import Any, Literal

from pydantic import BaseModel, field_validator


class Account(BaseModel):
    login: str


class Repository(BaseModel):
    full_name: str

    @field_validator("full_name")
    @classmethod
    def full_name_must_have_owner(cls, v):
        owner, _, name = v.partition("/")
        if not owner or not name:
            raise ValueError("full_name must be 'owner/name'")
        return v


class CommitRef(BaseModel):
    sha: str


class PullRequest(BaseModel):
    number: int
    head: CommitRef


class HeadCommit(BaseModel):
    id: str


class PullRequestEvent(BaseModel):
    kind: Literal["pull_request"] = "pull_request"
    action: str
    repository: Repository
    sender: Account
    pull_request: PullRequest

    @property
    def sha(self) -> str:
        return self.pull_request.head.sha

    @property
    def ref(self) -> str:
        return f"refs/pull/{self.pull_request.number}/head"


class PushEvent(BaseModel):
    kind: Literal["push"] = "push"
    ref: str
    repository: Repository
    sender: Account
    # None when the push deleted the ref.
    head_commit: HeadCommit | None = None


class UnknownEvent(BaseModel):
    kind: Literal["unknown"] = "unknown"
    event_type: str
    repository: str | None = None
    actor: str | None = None


WebhookEvent = PullRequestEvent | PushEvent | UnknownEvent


def parse_webhook(event_type: str, payload: Any) -> WebhookEvent:
    """
    Parse a decoded webhook body according to its X-GitHub-Event type.

    Raises ValueError (pydantic's ValidationError included) when the payload
    is not a JSON object or lacks the fields the event type needs.
    """
    if not isinstance(payload, dict):
        raise ValueError("webhook payload must be a JSON object")

    match event_type:
        case "pull_request":
            return PullRequestEvent.model_validate(payload)
        case "push":
            return PushEvent.model_validate(payload)
        case _:
            repository = payload.get("repository")
            sender = payload.get("sender")
            return UnknownEvent(
                event_type=event_type,
                repository=_field(repository, "full_name"),
                actor=_field(sender, "login"),
            )


def _field(obj: Any, key: str) -> str | None:
    if isinstance(obj, dict) and isinstance(obj.get(key), str):
        return obj[key]
    return None
