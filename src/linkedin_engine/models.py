"""Data models for the LinkedIn engine client."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Optional, Union

ALL = "ALL"

TargetTotal = Union[int, Literal["ALL"]]


class ResourceKind(str, Enum):
    """Paginated resource streams."""

    CONNECTIONS = "CONNECTIONS"
    INVITATIONS = "INVITATIONS"
    CONVERSATIONS = "CONVERSATIONS"
    MESSAGES = "MESSAGES"


@dataclass(frozen=True)
class OffsetCursor:
    """Position in an offset-paginated stream (connections, invitations)."""

    start: int = 0

    def __post_init__(self):
        if self.start < 0:
            raise ValueError(f"start must be >= 0, got {self.start}")


@dataclass(frozen=True)
class TimeWindowCursor:
    """Position in a time-window stream (conversations, messages).

    Timestamps are epoch milliseconds. ``created_before`` moves backwards
    (older) on every full page; ``created_after`` is the fixed lower bound.
    """

    created_before: Optional[int] = None
    created_after: Optional[int] = None

    @property
    def is_exhausted(self) -> bool:
        """True when the window has moved past its lower bound."""
        return (
            self.created_before is not None
            and self.created_after is not None
            and self.created_before <= self.created_after
        )


FetchCursor = Union[OffsetCursor, TimeWindowCursor]


@dataclass
class PageRequest:
    """One fetch cycle request for a resource stream."""

    resource_kind: ResourceKind
    cursor: FetchCursor
    limit: int
    target_total: TargetTotal = ALL
    scope: dict[str, Any] = field(default_factory=dict)


@dataclass
class DeliveryChunk:
    """Fixed-size slice of fetched items handed to the notifier."""

    items: list[Any]
    fetch_completed: bool
    resume_cursor: Optional[FetchCursor] = None
    error: Optional[str] = None

    def __post_init__(self):
        if self.fetch_completed and self.resume_cursor is not None:
            raise ValueError("A completed chunk cannot carry a resume cursor")


@dataclass
class FetchCycleResult:
    """Outcome of a single pagination cycle."""

    items: list[Any]
    fetch_completed: bool
    next_cursor: Optional[FetchCursor] = None
    fetch_at_once: int = 0
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


# Typed remote records


@dataclass
class Connection:
    """First-degree connection."""

    urn_id: Optional[str]
    public_identifier: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    headline: Optional[str] = None
    created_at: Optional[int] = None


@dataclass
class Invitation:
    """Pending connection invitation (received or sent)."""

    invitation_id: Optional[str]
    shared_secret: Optional[str] = None
    urn_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    message: Optional[str] = None
    sent_at: Optional[int] = None
    invitation_type: Optional[str] = None


@dataclass
class Message:
    """Single message event in a conversation."""

    urn: str
    sender_urn: Optional[str] = None
    text: Optional[str] = None
    created_at: Optional[int] = None


@dataclass
class Conversation:
    """Conversation with its most recent messages, newest first."""

    urn: Optional[str]
    participants: list[str] = field(default_factory=list)
    messages: list[Message] = field(default_factory=list)
    unread: bool = False

    @property
    def last_activity_at(self) -> Optional[int]:
        if not self.messages:
            return None
        return self.messages[0].created_at


@dataclass
class PhoneNumber:
    number: str
    type: Optional[str] = None


@dataclass
class Profile:
    """Member profile with contact information."""

    urn_id: str
    public_identifier: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    headline: Optional[str] = None
    profile_pic_url: Optional[str] = None
    country: Optional[str] = None
    company: Optional[str] = None
    current_position: Optional[str] = None
    still_working: bool = False
    school: Optional[str] = None
    industries: list[str] = field(default_factory=list)
    email: Optional[str] = None
    phone_numbers: list[PhoneNumber] = field(default_factory=list)


@dataclass
class SearchPerson:
    urn_id: str
    name: Optional[str] = None
    headline: Optional[str] = None
    location: Optional[str] = None
    profile_url: Optional[str] = None


@dataclass
class SearchResult:
    """One page of people search results."""

    people: list[SearchPerson]
    total: int
    query: Optional[str] = None


@dataclass
class SearchUrlCheck:
    """Whether a search URL is usable and needs a premium seat."""

    is_valid: bool
    total: int = 0
    need_premium: bool = False


# Single-shot operation results


class InviteStatus(str, Enum):
    SENT = "SENT"
    WEEKLY_LIMIT_REACHED = "WEEKLY_LIMIT_REACHED"
    FAILED = "FAILED"


@dataclass
class InvitationResult:
    status: InviteStatus
    message: Optional[str] = None

    @property
    def sent(self) -> bool:
        return self.status == InviteStatus.SENT


@dataclass
class WithdrawResult:
    success: bool
    mailbox_item_id: str = ""
    urn_id: str = ""


@dataclass
class InMailResult:
    success: bool
    conversation_urn: Optional[str] = None
    message: Optional[str] = None
    reason: Optional[str] = None


# Send targets


@dataclass(frozen=True)
class ConversationTarget:
    """Reply inside an existing conversation."""

    conversation_urn: str


@dataclass(frozen=True)
class RecipientTarget:
    """Start a new conversation with a member."""

    recipient_urn: str


SendTarget = Union[ConversationTarget, RecipientTarget]


# Actions


class ActionType(str, Enum):
    """Discrete campaign operations."""

    PROFILE_FETCH = "PROFILE_FETCH"
    SEND_MESSAGE = "SEND_MESSAGE"
    LIKE_POST = "LIKE_POST"
    ENDORSE_SKILL = "ENDORSE_SKILL"
    FOLLOW_REQUEST = "FOLLOW_REQUEST"
    SEND_INVITE = "SEND_INVITE"
    WITHDRAW_INVITE = "WITHDRAW_INVITE"
    SEND_INEMAIL = "SEND_INEMAIL"
    # Browser automation only
    VIEW_PROFILE = "VIEW_PROFILE"
    CONNECTION_STATUS = "CONNECTION_STATUS"
    REPLY_MESSAGE = "REPLY_MESSAGE"


API_ACTIONS = frozenset(
    {
        ActionType.PROFILE_FETCH,
        ActionType.SEND_MESSAGE,
        ActionType.LIKE_POST,
        ActionType.ENDORSE_SKILL,
        ActionType.FOLLOW_REQUEST,
        ActionType.SEND_INVITE,
        ActionType.WITHDRAW_INVITE,
        ActionType.SEND_INEMAIL,
    }
)


@dataclass
class Action:
    """One campaign operation against a target profile or conversation."""

    type: ActionType
    profile_id: str
    campaign_id: Optional[str] = None
    audience_id: Optional[str] = None
    lead_id: Optional[str] = None
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class EngineRequest:
    """Ordered list of actions for one integration and campaign."""

    integration_id: str
    campaign_id: str
    actions: list[Action] = field(default_factory=list)


class ActionState(str, Enum):
    PENDING = "PENDING"
    DISPATCHED = "DISPATCHED"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    HANDED_OFF = "HANDED_OFF"


@dataclass
class ActionSuccess:
    data: dict[str, Any] = field(default_factory=dict)

    success = True


@dataclass
class ActionFailure:
    message: str
    should_retry: bool
    reason: Optional[str] = None

    success = False


ActionResult = Union[ActionSuccess, ActionFailure]


@dataclass
class DispatchOutcome:
    """Final state of one action handled by the dispatcher."""

    action: Action
    state: ActionState
    result: Optional[ActionResult] = None


@dataclass
class Session:
    """Stored browser session of an integration."""

    cookies: dict[str, str]
    user_agent: Optional[str] = None
    proxy: Optional[str] = None


@dataclass
class ApiParams:
    """Per-call credentials resolved from an integration session."""

    cookies: dict[str, str]
    user_agent: Optional[str] = None
    proxy: Optional[str] = None
    log_context: str = ""
