"""Interfaces of the collaborators the engine talks to.

The engine never depends on a concrete transport, publisher, session store or
browser automation. Implementations are injected and only need to match these
protocols structurally.
"""

from enum import Enum
from typing import Any, Optional, Protocol

from .models import (
    Action,
    ActionResult,
    ApiParams,
    DeliveryChunk,
    EngineRequest,
    FetchCursor,
    ResourceKind,
    Session,
    WithdrawResult,
)


class RemoteAction(str, Enum):
    """Single-shot operations a remote source can perform."""

    GET_PROFILE = "GET_PROFILE"
    SEND_MESSAGE = "SEND_MESSAGE"
    SEND_TYPING = "SEND_TYPING"
    MARK_SEEN = "MARK_SEEN"
    SEND_REACTION = "SEND_REACTION"
    ENDORSE_SKILL = "ENDORSE_SKILL"
    FOLLOW = "FOLLOW"
    SEND_INVITE = "SEND_INVITE"
    MANAGE_INVITATION = "MANAGE_INVITATION"
    WITHDRAW_INVITATION = "WITHDRAW_INVITATION"
    SEND_INMAIL = "SEND_INMAIL"
    SEARCH = "SEARCH"


class RemoteSource(Protocol):
    """Access to the remote platform.

    Implementations raise on failure; callers convert errors to typed results.
    """

    async def fetch_page(
        self,
        resource_kind: ResourceKind,
        params: ApiParams,
        cursor: FetchCursor,
        limit: int,
        scope: Optional[dict[str, Any]] = None,
    ) -> list[Any]:
        ...

    async def perform_action(
        self, kind: RemoteAction, params: ApiParams, payload: dict[str, Any]
    ) -> Any:
        ...


class Notifier(Protocol):
    """Downstream consumer of delivery chunks and action results."""

    async def on_delivery_chunk(
        self,
        integration_id: str,
        resource_kind: ResourceKind,
        chunk: DeliveryChunk,
        scope: dict[str, Any],
    ) -> None:
        ...

    async def on_action_result(
        self,
        integration_id: str,
        campaign_id: str,
        action: Action,
        result: ActionResult,
    ) -> None:
        ...

    async def on_withdraw_finished(
        self, integration_id: str, invitation_id: str, result: WithdrawResult
    ) -> None:
        ...


class SessionStore(Protocol):
    async def get_session(self, integration_id: str) -> Optional[Session]:
        ...


class BrowserAutomation(Protocol):
    """Fallback path for actions the API cannot perform."""

    async def submit(self, request: EngineRequest) -> None:
        ...

