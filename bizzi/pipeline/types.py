"""Value types that flow between pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

T = TypeVar("T")


class InvalidRequest(ValueError):
    """Raised before any stage runs when the inbound request is unusable."""

    def __init__(self, code: str, detail: str = ""):
        super().__init__(detail or code)
        self.code = code


# ── Inbound request ─────────────────────────────────────────────────


class RequestHints(BaseModel):
    """Client-side hints; all optional, unknown keys ignored."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    thread_id: str | None = Field(default=None, validation_alias=AliasChoices("thread_id", "threadId"))
    account_id: str | None = Field(default=None, validation_alias=AliasChoices("account_id", "accountId"))
    search_query: str | None = Field(default=None, validation_alias=AliasChoices("search_query", "searchQuery"))
    from_email: str | None = Field(default=None, validation_alias=AliasChoices("from_email", "fromEmail"))
    to_email: str | None = Field(default=None, validation_alias=AliasChoices("to_email", "toEmail"))
    followup_delay: str | None = Field(
        default=None, validation_alias=AliasChoices("followup_delay", "followupDelay")
    )
    contact_name: str | None = Field(default=None, validation_alias=AliasChoices("contact_name", "contactName"))
    metric: str | None = None
    period: str | None = None

    @property
    def has_email_continuity(self) -> bool:
        return bool(self.thread_id or self.account_id)


class ChatRequest(BaseModel):
    """Inbound chat turn."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    user_id: str | None = None
    business_id: str | None = None
    message: str = ""
    intent: str | None = Field(default=None, validation_alias=AliasChoices("intent", "type"))
    route: str = ""
    hints: RequestHints = Field(default_factory=RequestHints)
    module: str | None = None
    depth: str | None = None
    style: str | None = None


# ── Classification ──────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class ClassificationCandidate:
    key: str
    base: float
    bonus: float = 0.0

    @property
    def score(self) -> float:
        return self.base + self.bonus

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "base": self.base, "bonus": round(self.bonus, 4), "score": round(self.score, 4)}


@dataclass(frozen=True, slots=True)
class ClarifyOption:
    intent: str
    label: str


@dataclass(frozen=True, slots=True)
class Classification:
    """Outcome of the classifier: exactly one resolved intent key."""

    key: str
    candidates: tuple[ClassificationCandidate, ...] = ()
    ambiguous: bool = False
    forced: bool = False
    options: tuple[ClarifyOption, ...] = ()

    def top(self, n: int = 5) -> list[dict[str, Any]]:
        return [c.to_dict() for c in self.candidates[:n]]


# ── Stage results / errors ──────────────────────────────────────────


class ErrorKind(str, Enum):
    CLASSIFICATION = "classification"
    CONTEXT = "context"
    INVOCATION = "invocation"
    POST_PROCESS = "post_process"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class StageError:
    kind: ErrorKind
    detail: str = ""

    def to_dict(self, *, with_detail: bool = True) -> dict[str, str]:
        if with_detail and self.detail:
            return {"kind": self.kind.value, "detail": self.detail}
        return {"kind": self.kind.value}


@dataclass(slots=True)
class StageResult(Generic[T]):
    """A stage's value plus the (optional) error it recovered from."""

    value: T
    error: StageError | None = None
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.error is None


# ── Output ──────────────────────────────────────────────────────────


@dataclass(slots=True)
class Action:
    """Client-facing suggested action."""

    kind: str  # chip | nav | cta
    label: str
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def chip(cls, label: str, **payload: Any) -> Action:
        return cls("chip", label, dict(payload))

    @classmethod
    def nav(cls, to: str, label: str = "Open") -> Action:
        return cls("nav", label, {"to": to})

    @classmethod
    def cta(cls, label: str, **payload: Any) -> Action:
        return cls("cta", label, dict(payload))

    def to_dict(self) -> dict[str, Any]:
        return {**self.payload, "kind": self.kind, "label": self.label}


@dataclass(slots=True)
class IntentOutput:
    """What a post-process hook receives and returns.

    ``extras`` is the only open slot; the normalizer folds it into
    ``meta`` so the envelope shape never grows.
    """

    response_text: str
    chips: list[Action] = field(default_factory=list)
    navigate_to: str | None = None
    cta: Action | None = None
    follow_up_prompt: str = ""
    extras: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ResponseEnvelope:
    response_text: str
    actions: list[Action] = field(default_factory=list)
    follow_up_prompt: str = ""
    meta: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "response_text": self.response_text,
            "actions": [a.to_dict() for a in self.actions],
            "follow_up_prompt": self.follow_up_prompt,
            "meta": dict(self.meta),
        }
