"""Integration manager.

List fetches run one pagination cycle, split the page into delivery chunks
and hand every chunk to the notifier. Single-shot operations resolve the
integration session, call the remote source and turn every failure into a
typed result, so callers never see a raw exception.
"""

from typing import Any, Optional, Union

from .config import EngineConfig
from .delivery import split_cycle
from .errors import SessionError
from .interfaces import Notifier, RemoteAction, RemoteSource, SessionStore
from .logging_config import get_logger, log_error_with_details, log_progress
from .models import (
    ALL,
    ActionFailure,
    Conversation,
    ConversationTarget,
    FetchCycleResult,
    InMailResult,
    InvitationResult,
    InviteStatus,
    OffsetCursor,
    PageRequest,
    Profile,
    RecipientTarget,
    ResourceKind,
    SearchResult,
    SearchUrlCheck,
    SendTarget,
    TargetTotal,
    TimeWindowCursor,
    WithdrawResult,
)
from .pagination import run_fetch_cycle, strategy_for
from .session import resolve_params

logger = get_logger(__name__)

NO_INVITATION_ID = "Campaign Action: No Invitation Id"
SEARCH_CHECK_COUNT = 25


class LinkedinManager:
    """Entry point for list fetches and single-shot operations of integrations."""

    def __init__(
        self,
        source: RemoteSource,
        notifier: Notifier,
        sessions: SessionStore,
        config: Optional[EngineConfig] = None,
    ):
        self.source = source
        self.notifier = notifier
        self.sessions = sessions
        self.config = config or EngineConfig()

    # List fetches

    async def fetch_connections(
        self,
        integration_id: str,
        count: TargetTotal = ALL,
        start: int = 0,
        fetched: int = 0,
    ) -> FetchCycleResult:
        """Fetch one page of connections.

        Args:
            integration_id: Integration whose session is used
            count: Target total across cycles, or ``ALL``
            start: Offset to resume from
            fetched: Items already delivered by previous cycles

        Returns:
            FetchCycleResult whose ``next_cursor`` resumes the stream
        """
        request = PageRequest(
            resource_kind=ResourceKind.CONNECTIONS,
            cursor=OffsetCursor(start=start),
            limit=self.config.pagination.connection_batch,
            target_total=count,
        )
        return await self._fetch_and_deliver(integration_id, request, fetched)

    async def fetch_invitations(
        self,
        integration_id: str,
        invitation_type: str = "PENDING",
        count: TargetTotal = ALL,
        start: int = 0,
        refresh_db: bool = False,
        fetched: int = 0,
    ) -> FetchCycleResult:
        """Fetch one page of pending (received) or sent invitations."""
        scope = {
            "invitation_type": "RECEIVED" if invitation_type == "PENDING" else "SENT",
            "refresh_db": refresh_db,
        }
        request = PageRequest(
            resource_kind=ResourceKind.INVITATIONS,
            cursor=OffsetCursor(start=start),
            limit=self.config.pagination.invitation_batch,
            target_total=count,
            scope=scope,
        )
        return await self._fetch_and_deliver(integration_id, request, fetched)

    async def fetch_conversations(
        self,
        integration_id: str,
        created_after: Optional[int] = None,
        created_before: Optional[int] = None,
    ) -> FetchCycleResult:
        """Fetch one page of conversations older than ``created_before``."""
        request = PageRequest(
            resource_kind=ResourceKind.CONVERSATIONS,
            cursor=TimeWindowCursor(
                created_before=created_before, created_after=created_after
            ),
            limit=self.config.pagination.message_batch,
        )
        return await self._fetch_and_deliver(integration_id, request)

    async def fetch_messages(
        self,
        integration_id: str,
        conversation_urn: str,
        created_before: Optional[int] = None,
        created_after: Optional[int] = None,
    ) -> FetchCycleResult:
        """Fetch one page of messages of a conversation."""
        request = PageRequest(
            resource_kind=ResourceKind.MESSAGES,
            cursor=TimeWindowCursor(
                created_before=created_before, created_after=created_after
            ),
            limit=self.config.pagination.message_batch,
            scope={"conversation_urn": conversation_urn},
        )
        return await self._fetch_and_deliver(integration_id, request)

    async def get_conversation_list(self, integration_id: str) -> list[Conversation]:
        """Return the most recent conversations without notifying anyone."""
        try:
            params = await resolve_params(self.sessions, integration_id)
            return list(
                await self.source.fetch_page(
                    ResourceKind.CONVERSATIONS,
                    params,
                    TimeWindowCursor(),
                    self.config.pagination.message_batch,
                    {},
                )
            )
        except Exception as e:
            log_error_with_details(
                logger, e, context={"integration_id": integration_id, "operation": "get_conversation_list"}
            )
            return []

    async def _fetch_and_deliver(
        self, integration_id: str, request: PageRequest, fetched: int = 0
    ) -> FetchCycleResult:
        kind = request.resource_kind
        try:
            params = await resolve_params(self.sessions, integration_id)
        except SessionError as e:
            log_error_with_details(logger, e, context={"resource_kind": kind.value})
            result = FetchCycleResult(items=[], fetch_completed=True, error=e.message)
        else:
            strategy = strategy_for(kind, self.config.pagination)
            result = await run_fetch_cycle(
                self.source, strategy, request, params, already_fetched=fetched
            )

        scope = dict(request.scope)
        if result.failed and "refresh_db" in scope:
            scope["refresh_db"] = False

        chunks = split_cycle(result, self.config.pagination.delivery_chunk_size)
        for chunk in chunks:
            await self.notifier.on_delivery_chunk(integration_id, kind, chunk, scope)

        log_progress(
            logger,
            f"Delivered {kind.value}",
            details={
                "integration_id": integration_id,
                "items": len(result.items),
                "chunks": len(chunks),
                "completed": result.fetch_completed,
            },
        )
        return result

    # Single-shot operations

    async def _perform(
        self, integration_id: str, kind: RemoteAction, payload: dict[str, Any]
    ) -> Any:
        params = await resolve_params(self.sessions, integration_id)
        return await self.source.perform_action(kind, params, payload)

    def _log_failure(
        self, error: Exception, integration_id: str, kind: RemoteAction, **context: Any
    ) -> None:
        log_error_with_details(
            logger,
            error,
            context={"integration_id": integration_id, "operation": kind.value, **context},
        )

    async def _perform_bool(
        self, integration_id: str, kind: RemoteAction, payload: dict[str, Any]
    ) -> bool:
        try:
            return bool(await self._perform(integration_id, kind, payload))
        except Exception as e:
            self._log_failure(e, integration_id, kind, **payload)
            return False

    async def get_profile(self, integration_id: str, urn_id: str) -> Optional[Profile]:
        try:
            return await self._perform(
                integration_id, RemoteAction.GET_PROFILE, {"urn_id": urn_id}
            )
        except Exception as e:
            self._log_failure(e, integration_id, RemoteAction.GET_PROFILE, urn_id=urn_id)
            return None

    async def send_message(
        self, integration_id: str, target: SendTarget, message: str
    ) -> bool:
        """Send a message to an existing conversation or to a new recipient."""
        if isinstance(target, ConversationTarget):
            payload = {"message": message, "conversation_urn": target.conversation_urn}
        elif isinstance(target, RecipientTarget):
            payload = {"message": message, "recipient_urn": target.recipient_urn}
        else:
            raise TypeError(f"Unsupported send target: {type(target).__name__}")
        return await self._perform_bool(integration_id, RemoteAction.SEND_MESSAGE, payload)

    async def send_typing(
        self, integration_id: str, conversation_urn: str, profile_urn: Optional[str] = None
    ) -> bool:
        return await self._perform_bool(
            integration_id,
            RemoteAction.SEND_TYPING,
            {"conversation_urn": conversation_urn, "profile_urn": profile_urn},
        )

    async def mark_seen(
        self, integration_id: str, conversation_urn: str, profile_urn: Optional[str] = None
    ) -> bool:
        return await self._perform_bool(
            integration_id,
            RemoteAction.MARK_SEEN,
            {"conversation_urn": conversation_urn, "profile_urn": profile_urn},
        )

    async def send_reaction(self, integration_id: str, urn_id: str) -> bool:
        return await self._perform_bool(
            integration_id, RemoteAction.SEND_REACTION, {"urn_id": urn_id}
        )

    async def endorse_skill(self, integration_id: str, urn_id: str) -> bool:
        return await self._perform_bool(
            integration_id, RemoteAction.ENDORSE_SKILL, {"urn_id": urn_id}
        )

    async def follow(self, integration_id: str, urn_id: str) -> bool:
        return await self._perform_bool(integration_id, RemoteAction.FOLLOW, {"urn_id": urn_id})

    async def send_invite(
        self, integration_id: str, urn_id: str, message: Optional[str] = None
    ) -> InvitationResult:
        try:
            return await self._perform(
                integration_id,
                RemoteAction.SEND_INVITE,
                {"urn_id": urn_id, "message": message},
            )
        except Exception as e:
            self._log_failure(e, integration_id, RemoteAction.SEND_INVITE, urn_id=urn_id)
            return InvitationResult(
                status=InviteStatus.FAILED, message=getattr(e, "message", None) or str(e)
            )

    async def manage_received_invitation(
        self,
        integration_id: str,
        invitation_id: str,
        action: str,
        shared_secret: Optional[str] = None,
        mailbox_item_id: Optional[str] = None,
    ) -> bool:
        """Accept or ignore a received invitation."""
        action = action.lower()
        if action not in ("accept", "ignore"):
            raise ValueError(f"Unsupported invitation action: {action}")
        return await self._perform_bool(
            integration_id,
            RemoteAction.MANAGE_INVITATION,
            {
                "invitation_id": mailbox_item_id or invitation_id,
                "action": action,
                "shared_secret": shared_secret,
            },
        )

    async def withdraw_invitation(
        self,
        integration_id: str,
        invitation_id: str = NO_INVITATION_ID,
        mailbox_item_id: Optional[str] = None,
        urn_id: Optional[str] = None,
    ) -> WithdrawResult:
        """Withdraw a sent invitation.

        The notifier hears about the outcome when the withdrawal succeeded,
        or when it failed for a real invitation id supplied by the caller.
        """
        try:
            result = await self._perform(
                integration_id,
                RemoteAction.WITHDRAW_INVITATION,
                {"mailbox_item_id": mailbox_item_id, "urn_id": urn_id},
            )
        except Exception as e:
            self._log_failure(
                e, integration_id, RemoteAction.WITHDRAW_INVITATION, urn_id=urn_id
            )
            result = WithdrawResult(success=False, urn_id=urn_id or "")

        if result.success or (invitation_id and invitation_id != NO_INVITATION_ID):
            await self.notifier.on_withdraw_finished(integration_id, invitation_id, result)
        return result

    async def send_inmail(
        self,
        integration_id: str,
        target_urn: str,
        subject: str,
        message: str,
        mailbox_urn: Optional[str] = None,
        is_premium: bool = False,
    ) -> InMailResult:
        try:
            return await self._perform(
                integration_id,
                RemoteAction.SEND_INMAIL,
                {
                    "recipient_urn": target_urn,
                    "subject": subject,
                    "message": message,
                    "mailbox_urn": mailbox_urn,
                    "is_premium": is_premium,
                },
            )
        except Exception as e:
            self._log_failure(e, integration_id, RemoteAction.SEND_INMAIL, target_urn=target_urn)
            return InMailResult(
                success=False,
                message=getattr(e, "message", None) or str(e),
                reason=getattr(e, "error_type", None),
            )

    async def search(
        self,
        integration_id: str,
        query: Optional[str] = None,
        search_url: Optional[str] = None,
        start: int = 0,
        count: int = 50,
    ) -> Union[SearchResult, ActionFailure]:
        """Run a people search; ``count`` is capped at the search batch size."""
        count = min(count, self.config.pagination.search_batch)
        try:
            return await self._perform(
                integration_id,
                RemoteAction.SEARCH,
                {"query": query, "search_url": search_url, "start": start, "count": count},
            )
        except Exception as e:
            self._log_failure(e, integration_id, RemoteAction.SEARCH, search_url=search_url)
            return ActionFailure(
                message=getattr(e, "message", None) or str(e),
                should_retry=False,
                reason=getattr(e, "error_type", None),
            )

    async def check_search_url(self, integration_id: str, search_url: str) -> SearchUrlCheck:
        """Check that a search URL returns people and whether it needs premium.

        A search that reports more than five people but returns five or fewer
        is being truncated for a non-premium account.
        """
        result = await self.search(
            integration_id, search_url=search_url, start=0, count=SEARCH_CHECK_COUNT
        )
        if isinstance(result, ActionFailure):
            return SearchUrlCheck(is_valid=False)

        leads = len(result.people)
        return SearchUrlCheck(
            is_valid=True,
            total=result.total,
            need_premium=leads <= 5 < result.total,
        )
