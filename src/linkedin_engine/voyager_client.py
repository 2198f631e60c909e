"""Remote source backed by the LinkedIn Voyager and Sales Navigator APIs.

Requests are authenticated with the session cookies of an integration. The
JSESSIONID cookie doubles as the CSRF token. One ``httpx.AsyncClient`` is kept
per proxy so integrations routed through different proxies never share a
connection pool.
"""

import asyncio
import json
import uuid
from datetime import datetime
from typing import Any, Optional
from urllib.parse import parse_qs, quote, urlparse

import httpx

from .config import MAX_SEARCH_BATCH, ClientConfig
from .errors import APIError, AuthError, RateLimitError
from .interfaces import RemoteAction
from .logging_config import get_logger
from .models import (
    ApiParams,
    Connection,
    Conversation,
    FetchCursor,
    InMailResult,
    Invitation,
    InvitationResult,
    InviteStatus,
    Message,
    PhoneNumber,
    Profile,
    ResourceKind,
    SearchPerson,
    SearchResult,
    WithdrawResult,
)

logger = get_logger(__name__)

CONNECTIONS_DECORATION = (
    "com.linkedin.voyager.dash.deco.web.mynetwork.ConnectionListWithProfile-16"
)
INVITATION_DECORATION = (
    "com.linkedin.voyager.dash.deco.relationships.InvitationCreationResultWithInvitee-2"
)
SEARCH_QUERY_ID = "voyagerSearchDashClusters.b0928897b71bd00a5a7291755dcd64f0"
MESSAGE_EVENT = "com.linkedin.voyager.messaging.event.MessageEvent"
MESSAGE_CREATE = "com.linkedin.voyager.messaging.create.MessageCreate"
MESSAGING_MEMBER = "com.linkedin.voyager.messaging.MessagingMember"

WEEKLY_LIMIT_CODES = ("WEEKLY_LIMIT", "FUSE_LIMIT_EXCEEDED")


def get_id_from_urn(urn: Optional[str]) -> Optional[str]:
    """Return the trailing id of a URN.

    ``urn:li:fs_miniProfile:ACoAAB`` gives ``ACoAAB``; compound URNs such as
    ``urn:li:fs_salesProfile:(ACwAAB,NAME_SEARCH,x)`` give their first member.
    """
    if not urn:
        return None
    if urn.endswith(")") and "(" in urn:
        return urn[urn.index("(") + 1 : -1].split(",")[0]
    return urn.split(":")[-1]


def _text(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        return value.get("text")
    return value


class VoyagerClient:
    """Client for the private LinkedIn web APIs.

    Implements the remote source interface used by the pagination engine and
    the integration manager. Every method raises :class:`APIError`,
    :class:`AuthError` or :class:`RateLimitError` on failure.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            config: Client configuration (base URLs, timeouts, retries)
            transport: Transport override, used to stub the network in tests
        """
        self.config = config or ClientConfig()
        self.base_url = self.config.api_base_url
        self.sales_url = self.config.sales_base_url
        self._transport = transport
        self._clients: dict[Optional[str], httpx.AsyncClient] = {}
        self._last_request_time: Optional[float] = None
        self._actions = {
            RemoteAction.GET_PROFILE: self.get_profile,
            RemoteAction.SEND_MESSAGE: self.send_message,
            RemoteAction.SEND_TYPING: self.send_typing,
            RemoteAction.MARK_SEEN: self.mark_seen,
            RemoteAction.SEND_REACTION: self.send_reaction,
            RemoteAction.ENDORSE_SKILL: self.endorse_skill,
            RemoteAction.FOLLOW: self.follow,
            RemoteAction.SEND_INVITE: self.send_invite,
            RemoteAction.MANAGE_INVITATION: self.manage_invitation,
            RemoteAction.WITHDRAW_INVITATION: self.withdraw_invitation,
            RemoteAction.SEND_INMAIL: self.send_inmail,
            RemoteAction.SEARCH: self.search,
        }

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        """Close every pooled HTTP client."""
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            await client.aclose()

    # Remote source interface

    async def fetch_page(
        self,
        resource_kind: ResourceKind,
        params: ApiParams,
        cursor: FetchCursor,
        limit: int,
        scope: Optional[dict[str, Any]] = None,
    ) -> list[Any]:
        """Fetch one page of a list resource."""
        scope = scope or {}
        if resource_kind == ResourceKind.CONNECTIONS:
            return await self.get_connections(params, start=cursor.start, count=limit)
        if resource_kind == ResourceKind.INVITATIONS:
            return await self.get_invitations(
                params,
                start=cursor.start,
                count=limit,
                invitation_type=scope.get("invitation_type", "RECEIVED"),
            )
        if resource_kind == ResourceKind.CONVERSATIONS:
            return await self.get_conversations(
                params,
                count=limit,
                created_before=cursor.created_before,
                created_after=cursor.created_after,
            )
        if resource_kind == ResourceKind.MESSAGES:
            return await self.get_messages(
                params,
                conversation_urn=scope["conversation_urn"],
                count=limit,
                created_before=cursor.created_before,
                created_after=cursor.created_after,
            )
        raise ValueError(f"Unsupported resource kind: {resource_kind}")

    async def perform_action(
        self, kind: RemoteAction, params: ApiParams, payload: dict[str, Any]
    ) -> Any:
        """Run a single-shot operation with keyword arguments from ``payload``."""
        handler = self._actions.get(kind)
        if handler is None:
            raise ValueError(f"Unsupported remote action: {kind}")
        return await handler(params, **payload)

    # Lists

    async def get_connections(
        self, params: ApiParams, start: int = 0, count: int = 100
    ) -> list[Connection]:
        """Fetch first-degree connections, most recently added first."""
        data = await self._make_request(
            "GET",
            f"{self.base_url}/relationships/dash/connections",
            params,
            query={
                "decorationId": CONNECTIONS_DECORATION,
                "count": count,
                "q": "search",
                "sortType": "RECENTLY_ADDED",
                "start": start,
            },
        )
        connections = []
        for element in data.get("elements", []):
            member = element.get("connectedMemberResolutionResult") or {}
            # Unresolvable members still count towards the page length
            urn = member.get("entityUrn") or element.get("connectedMember")
            connections.append(
                Connection(
                    urn_id=get_id_from_urn(urn),
                    public_identifier=member.get("publicIdentifier"),
                    first_name=member.get("firstName"),
                    last_name=member.get("lastName"),
                    headline=member.get("headline"),
                    created_at=element.get("createdAt"),
                )
            )
        return connections

    async def get_invitations(
        self,
        params: ApiParams,
        start: int = 0,
        count: int = 100,
        invitation_type: str = "RECEIVED",
    ) -> list[Invitation]:
        """Fetch pending invitations.

        Args:
            params: Session credentials
            start: Offset of the first invitation
            count: Page size
            invitation_type: ``RECEIVED`` or ``SENT``
        """
        if invitation_type == "SENT":
            url = f"{self.base_url}/relationships/sentInvitationViewsV2"
            query = {
                "start": start,
                "count": count,
                "invitationType": "CONNECTION",
                "q": "invitationType",
            }
        else:
            url = f"{self.base_url}/relationships/invitationViews"
            query = {
                "start": start,
                "count": count,
                "includeInsights": "true",
                "q": "receivedInvitation",
            }

        data = await self._make_request("GET", url, params, query=query)
        invitations = []
        for element in data.get("elements", []):
            raw = element.get("invitation")
            if raw is None and element.get("invitations"):
                raw = element["invitations"][0]
            raw = raw or {}
            member = raw.get("toMember") if invitation_type == "SENT" else raw.get("fromMember")
            member = member or {}
            invitations.append(
                Invitation(
                    invitation_id=get_id_from_urn(raw.get("entityUrn")),
                    shared_secret=raw.get("sharedSecret"),
                    urn_id=get_id_from_urn(member.get("entityUrn")),
                    first_name=member.get("firstName"),
                    last_name=member.get("lastName"),
                    message=raw.get("message"),
                    sent_at=raw.get("sentTime"),
                    invitation_type=invitation_type,
                )
            )
        return invitations

    async def get_conversations(
        self,
        params: ApiParams,
        count: int = 20,
        created_before: Optional[int] = None,
        created_after: Optional[int] = None,
    ) -> list[Conversation]:
        """Fetch conversations with activity between ``created_after`` and ``created_before``."""
        query: dict[str, Any] = {"keyVersion": "LEGACY_INBOX", "count": count}
        if created_before is not None:
            query["createdBefore"] = created_before
        if created_after is not None:
            query["createdAfter"] = created_after

        data = await self._make_request(
            "GET", f"{self.base_url}/messaging/conversations", params, query=query
        )
        conversations = []
        for element in data.get("elements", []):
            participants = []
            for participant in element.get("participants", []):
                member = participant.get(MESSAGING_MEMBER, participant)
                profile_urn = (member.get("miniProfile") or {}).get("entityUrn")
                if profile_urn:
                    participants.append(get_id_from_urn(profile_urn))
            conversations.append(
                Conversation(
                    urn=element.get("entityUrn"),
                    participants=participants,
                    messages=[self._parse_event(e) for e in element.get("events", [])],
                    unread=not element.get("read", True),
                )
            )
        return conversations

    async def get_messages(
        self,
        params: ApiParams,
        conversation_urn: str,
        count: int = 20,
        created_before: Optional[int] = None,
        created_after: Optional[int] = None,
    ) -> list[Message]:
        """Fetch message events of a conversation, newest first."""
        query: dict[str, Any] = {"count": count}
        if created_before is not None:
            query["createdBefore"] = created_before
        if created_after is not None:
            query["createdAfter"] = created_after

        conversation_id = get_id_from_urn(conversation_urn)
        data = await self._make_request(
            "GET",
            f"{self.base_url}/messaging/conversations/{conversation_id}/events",
            params,
            query=query,
        )
        return [self._parse_event(e) for e in data.get("elements", [])]

    # Profiles

    async def get_profile(self, params: ApiParams, urn_id: str = "me") -> Profile:
        """Fetch a profile together with its contact information."""
        view = await self._make_request(
            "GET", f"{self.base_url}/identity/profiles/{urn_id}/profileView", params
        )
        contact = await self._make_request(
            "GET",
            f"{self.base_url}/identity/profiles/{urn_id}/profileContactInfo",
            params,
        )
        return self._parse_profile(urn_id, view, contact)

    # Messaging

    async def send_message(
        self,
        params: ApiParams,
        message: str,
        conversation_urn: Optional[str] = None,
        recipient_urn: Optional[str] = None,
    ) -> bool:
        """Send a message into a conversation or to a single recipient."""
        if not (conversation_urn or recipient_urn):
            raise ValueError("Either conversation_urn or recipient_urn is required")

        event = {
            "eventCreate": {
                "originToken": str(uuid.uuid4()),
                "value": {
                    MESSAGE_CREATE: {
                        "attributedBody": {"text": message, "attributes": []},
                        "attachments": [],
                    }
                },
            },
            "dedupeByClientGeneratedToken": False,
        }
        if conversation_urn:
            conversation_id = get_id_from_urn(conversation_urn)
            url = f"{self.base_url}/messaging/conversations/{conversation_id}/events"
            body = event
        else:
            url = f"{self.base_url}/messaging/conversations"
            event["recipients"] = [recipient_urn]
            event["subtype"] = "MEMBER_TO_MEMBER"
            body = {"keyVersion": "LEGACY_INBOX", "conversationCreate": event}

        data = await self._make_request(
            "POST", url, params, query={"action": "create"}, json_body=body
        )
        return bool(data.get("value"))

    async def send_typing(
        self, params: ApiParams, conversation_urn: str, profile_urn: Optional[str] = None
    ) -> bool:
        await self._make_request(
            "POST",
            f"{self.base_url}/messaging/conversations",
            params,
            query={"action": "typing"},
            json_body={"conversationId": get_id_from_urn(conversation_urn)},
        )
        return True

    async def mark_seen(
        self, params: ApiParams, conversation_urn: str, profile_urn: Optional[str] = None
    ) -> bool:
        conversation_id = get_id_from_urn(conversation_urn)
        await self._make_request(
            "POST",
            f"{self.base_url}/messaging/conversations/{conversation_id}",
            params,
            json_body={"patch": {"$set": {"read": True}}},
        )
        return True

    # Engagement

    async def send_reaction(
        self, params: ApiParams, urn_id: str, reaction: str = "LIKE"
    ) -> bool:
        """React to the latest post of a member.

        Returns True without reacting when the member has no post.
        """
        activity = await self._make_request(
            "GET",
            f"{self.base_url}/identity/profileUpdatesV2",
            params,
            query={
                "profileUrn": f"urn:li:fsd_profile:{urn_id}",
                "q": "memberShareFeed",
                "moduleKey": "member-shares:phone",
                "count": 1,
                "start": 0,
            },
        )
        post_urn = None
        for element in activity.get("elements", []):
            post_urn = (element.get("updateMetadata") or {}).get("urn")
            if post_urn:
                break
        if not post_urn:
            logger.info("%s - No post found to react to for %s", params.log_context, urn_id)
            return True

        logger.debug("%s - Reacting %s to %s", params.log_context, reaction, post_urn)
        await self._make_request(
            "POST",
            f"{self.base_url}/voyagerSocialDashReactions",
            params,
            query={"threadUrn": post_urn},
            json_body={"reactionType": reaction},
        )
        return True

    async def endorse_skill(self, params: ApiParams, urn_id: str) -> bool:
        """Endorse the first featured skill not yet endorsed by the viewer.

        Returns True without endorsing when no such skill exists.
        """
        skills = await self._make_request(
            "GET",
            f"{self.base_url}/identity/profiles/{urn_id}/featuredSkills",
            params,
            query={"includeHiddenEndorsers": "false", "count": 5, "start": 0},
        )
        skill = None
        for element in skills.get("elements", []):
            if element.get("skill") and not element.get("endorsedByViewer"):
                skill = element["skill"]
                break
        if skill is None:
            logger.info("%s - No skill to endorse for %s", params.log_context, urn_id)
            return True

        await self._make_request(
            "POST",
            f"{self.base_url}/identity/profiles/{urn_id}/normEndorsements",
            params,
            json_body={"skill": {"entityUrn": skill.get("entityUrn"), "name": skill.get("name")}},
        )
        return True

    async def follow(self, params: ApiParams, urn_id: str) -> bool:
        data = await self._make_request(
            "POST",
            f"{self.base_url}/feed/follows",
            params,
            query={"action": "followByEntityUrn"},
            json_body={"urn": f"urn:li:fs_followingInfo:{urn_id}"},
        )
        # The endpoint answers with an empty body on success
        return not data

    # Invitations

    async def send_invite(
        self, params: ApiParams, urn_id: str, message: Optional[str] = None
    ) -> InvitationResult:
        """Send a connection invitation.

        A weekly invitation limit is reported as a result, not raised.
        """
        body: dict[str, Any] = {
            "invitee": {"inviteeUnion": {"memberProfile": f"urn:li:fsd_profile:{urn_id}"}}
        }
        if message:
            body["customMessage"] = message

        response = await self._request(
            "POST",
            f"{self.base_url}/voyagerRelationshipsDashMemberRelationships",
            params,
            query={"action": "verifyQuotaAndCreateV2", "decorationId": INVITATION_DECORATION},
            json_body=body,
            handle_rate_limit=False,
        )
        code = str(self._error_payload(response).get("code", ""))
        if response.status_code == 429 or any(c in code for c in WEEKLY_LIMIT_CODES):
            logger.info("%s - Weekly invitation limit reached", params.log_context)
            return InvitationResult(
                status=InviteStatus.WEEKLY_LIMIT_REACHED, message="Weekly limit reached"
            )
        if code == "CANT_RESEND_YET":
            return InvitationResult(
                status=InviteStatus.FAILED, message="Invitation already sent recently"
            )
        self._raise_for_status(response)
        return InvitationResult(status=InviteStatus.SENT)

    async def manage_invitation(
        self,
        params: ApiParams,
        invitation_id: str,
        action: str,
        shared_secret: Optional[str] = None,
    ) -> bool:
        """Accept, ignore or withdraw an invitation."""
        body: dict[str, Any] = {"invitationId": invitation_id, "isGenericInvitation": False}
        if shared_secret:
            body["invitationSharedSecret"] = shared_secret
        await self._make_request(
            "POST",
            f"{self.base_url}/relationships/invitations/{invitation_id}",
            params,
            query={"action": action},
            json_body=body,
        )
        return True

    async def withdraw_invitation(
        self,
        params: ApiParams,
        mailbox_item_id: Optional[str] = None,
        urn_id: Optional[str] = None,
    ) -> WithdrawResult:
        """Withdraw a sent invitation, looking it up by member when needed."""
        if not mailbox_item_id:
            if not urn_id:
                logger.error(
                    "%s - urn_id or mailbox_item_id is required to withdraw", params.log_context
                )
                return WithdrawResult(success=False)
            sent = await self.get_invitations(params, count=100, invitation_type="SENT")
            mailbox_item_id = next(
                (inv.invitation_id for inv in sent if inv.urn_id == urn_id), None
            )
            if not mailbox_item_id:
                logger.warning(
                    "%s - No sent invitation found for %s", params.log_context, urn_id
                )
                return WithdrawResult(success=False, urn_id=urn_id)

        await self.manage_invitation(params, get_id_from_urn(mailbox_item_id), "withdraw")
        return WithdrawResult(
            success=True,
            mailbox_item_id=get_id_from_urn(mailbox_item_id),
            urn_id=urn_id or "",
        )

    # InMail

    async def send_inmail(
        self,
        params: ApiParams,
        recipient_urn: str,
        subject: str,
        message: str,
        mailbox_urn: Optional[str] = None,
        is_premium: bool = False,
    ) -> InMailResult:
        """Send an InMail, falling back to Sales Navigator for premium seats."""
        event = {
            "eventCreate": {
                "originToken": str(uuid.uuid4()),
                "value": {
                    MESSAGE_CREATE: {
                        "attributedBody": {"text": message, "attributes": []},
                        "subject": subject,
                        "attachments": [],
                    }
                },
            },
            "recipients": [recipient_urn],
            "subtype": "INMAIL",
        }
        body: dict[str, Any] = {"keyVersion": "LEGACY_INBOX", "conversationCreate": event}
        if mailbox_urn:
            body["mailboxUrn"] = mailbox_urn

        try:
            data = await self._make_request(
                "POST",
                f"{self.base_url}/messaging/conversations",
                params,
                query={"action": "create"},
                json_body=body,
            )
            value = data.get("value") or {}
            return InMailResult(success=True, conversation_urn=value.get("conversationUrn"))
        except APIError as e:
            failure = InMailResult(
                success=False, message=e.message, reason=e.details.get("code") or "UNKNOWN_ERROR"
            )
            logger.debug("%s - InMail failed: %s", params.log_context, failure.reason)

        if not is_premium:
            return failure

        logger.debug("%s - Retrying InMail through Sales Navigator", params.log_context)
        try:
            data = await self._make_request(
                "POST",
                f"{self.sales_url}/salesApiMessageActions",
                params,
                query={"action": "createMessage"},
                json_body={
                    "createMessageRequest": {
                        "recipients": [recipient_urn],
                        "subject": subject,
                        "body": message,
                        "attachments": [],
                    }
                },
            )
        except APIError as e:
            logger.warning("%s - Sales Navigator InMail failed: %s", params.log_context, e.message)
            return InMailResult(
                success=False, message=e.message, reason=e.details.get("code") or "UNKNOWN_ERROR"
            )
        value = data.get("value") or {}
        return InMailResult(success=True, conversation_urn=value.get("threadUrn"))

    # Search

    async def search(
        self,
        params: ApiParams,
        query: Optional[str] = None,
        search_url: Optional[str] = None,
        start: int = 0,
        count: int = MAX_SEARCH_BATCH,
    ) -> SearchResult:
        """Search people from a prepared query or a search page URL.

        Sales Navigator URLs (``/sales/...``) go to the Sales API; regular
        search URLs are turned into a Voyager search query.
        """
        count = min(count, MAX_SEARCH_BATCH)
        if search_url and not query:
            parsed = urlparse(search_url)
            if parsed.path.startswith("/sales/"):
                return await self._search_sales(params, parsed, start, count)
            query = self._query_from_search_url(parsed)
        if not query:
            raise ValueError("Either query or search_url is required")

        paged = query.replace("(start:0,", f"(start:{start},count:{count},", 1)
        url = (
            f"{self.base_url}/graphql?variables={quote(paged, safe='(),:')}"
            f"&queryId={SEARCH_QUERY_ID}"
        )
        data = await self._make_request("GET", url, params)
        clusters = ((data.get("data") or {}).get("searchDashClustersByAll")) or {}
        people = []
        for cluster in clusters.get("elements", []):
            for item in cluster.get("items", []):
                entity = (item.get("item") or {}).get("entityResult")
                if not entity:
                    continue
                people.append(
                    SearchPerson(
                        urn_id=get_id_from_urn(entity.get("entityUrn")),
                        name=_text(entity.get("title")),
                        headline=_text(entity.get("primarySubtitle")),
                        location=_text(entity.get("secondarySubtitle")),
                        profile_url=entity.get("navigationUrl"),
                    )
                )
        total = (clusters.get("paging") or {}).get("total", len(people))
        return SearchResult(people=people, total=total, query=query)

    async def _search_sales(
        self, params: ApiParams, parsed, start: int, count: int
    ) -> SearchResult:
        sales_query = parse_qs(parsed.query).get("query", [""])[0]
        data = await self._make_request(
            "GET",
            f"{self.sales_url}/salesApiLeadSearch",
            params,
            query={"q": "searchQuery", "query": sales_query, "start": start, "count": count},
        )
        people = [
            SearchPerson(
                urn_id=get_id_from_urn(element.get("entityUrn")),
                name=element.get("fullName"),
                headline=(element.get("currentPositions") or [{}])[0].get("title"),
                location=element.get("geoRegion"),
            )
            for element in data.get("elements", [])
        ]
        total = (data.get("paging") or {}).get("total", len(people))
        return SearchResult(people=people, total=total, query=None)

    @staticmethod
    def _query_from_search_url(parsed) -> str:
        keywords = parse_qs(parsed.query).get("keywords", [""])[0]
        return (
            f"(start:0,origin:FACETED_SEARCH,query:(keywords:{keywords},"
            "flagshipSearchIntent:SEARCH_SRP,"
            "queryParameters:List((key:resultType,value:List(PEOPLE))),"
            "includeFiltersInResponse:false))"
        )

    # Parsing

    @staticmethod
    def _parse_event(event: dict[str, Any]) -> Message:
        content = (event.get("eventContent") or {}).get(MESSAGE_EVENT) or {}
        sender = (event.get("from") or {}).get(MESSAGING_MEMBER) or {}
        return Message(
            urn=event.get("entityUrn", ""),
            sender_urn=get_id_from_urn((sender.get("miniProfile") or {}).get("entityUrn")),
            text=_text(content.get("attributedBody")) or content.get("body"),
            created_at=event.get("createdAt"),
        )

    @staticmethod
    def _parse_profile(
        urn_id: str, view: dict[str, Any], contact: dict[str, Any]
    ) -> Profile:
        profile = view.get("profile") or {}
        mini = profile.get("miniProfile") or {}
        positions = (view.get("positionView") or {}).get("elements", [])
        schools = (view.get("educationView") or {}).get("elements", [])
        current = positions[0] if positions else {}
        still_working = bool(current) and not (current.get("timePeriod") or {}).get("endDate")

        picture = None
        artifacts = (
            ((mini.get("picture") or {}).get("com.linkedin.common.VectorImage") or {})
        )
        if artifacts.get("rootUrl") and artifacts.get("artifacts"):
            picture = (
                artifacts["rootUrl"]
                + artifacts["artifacts"][-1].get("fileIdentifyingUrlPathSegment", "")
            )

        return Profile(
            urn_id=get_id_from_urn(mini.get("entityUrn")) or urn_id,
            public_identifier=mini.get("publicIdentifier"),
            first_name=profile.get("firstName"),
            last_name=profile.get("lastName"),
            headline=profile.get("headline"),
            profile_pic_url=picture,
            country=profile.get("geoCountryName") or profile.get("locationName"),
            company=current.get("companyName"),
            current_position=current.get("title"),
            still_working=still_working,
            school=schools[0].get("schoolName") if schools else None,
            industries=[profile["industryName"]] if profile.get("industryName") else [],
            email=contact.get("emailAddress"),
            phone_numbers=[
                PhoneNumber(number=p.get("number", ""), type=p.get("type"))
                for p in contact.get("phoneNumbers") or []
            ],
        )

    # Transport

    def _client_for(self, proxy: Optional[str]) -> httpx.AsyncClient:
        client = self._clients.get(proxy)
        if client is None:
            kwargs: dict[str, Any] = {"timeout": self.config.timeout, "follow_redirects": True}
            if self._transport is not None:
                kwargs["transport"] = self._transport
            elif proxy:
                kwargs["proxy"] = proxy
            client = httpx.AsyncClient(**kwargs)
            self._clients[proxy] = client
        return client

    def _headers(self, params: ApiParams) -> dict[str, str]:
        headers = {
            "user-agent": params.user_agent or self.config.user_agent,
            "accept": "application/vnd.linkedin.normalized+json+2.1",
            "x-restli-protocol-version": "2.0.0",
            "x-li-lang": "en_US",
            "cookie": "; ".join(f"{k}={v}" for k, v in params.cookies.items()),
        }
        jsessionid = params.cookies.get("JSESSIONID")
        if jsessionid:
            headers["csrf-token"] = jsessionid.strip('"')
        return headers

    async def _make_request(
        self,
        method: str,
        url: str,
        params: ApiParams,
        query: Optional[dict[str, Any]] = None,
        json_body: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Make an HTTP request and decode the JSON body.

        Raises:
            AuthError: If the session is rejected
            RateLimitError: If rate limited after all retries
            APIError: For any other failure
        """
        response = await self._request(method, url, params, query=query, json_body=json_body)
        self._raise_for_status(response)
        logger.debug("Response: %s", response.status_code)
        if not response.text:
            return {}
        try:
            return response.json()
        except json.JSONDecodeError as e:
            raise APIError(
                "Invalid JSON in response",
                details={"url": url, "response": response.text[:500]},
                status_code=response.status_code,
            ) from e

    async def _request(
        self,
        method: str,
        url: str,
        params: ApiParams,
        query: Optional[dict[str, Any]] = None,
        json_body: Optional[dict[str, Any]] = None,
        handle_rate_limit: bool = True,
        retry_count: int = 0,
    ) -> httpx.Response:
        """Send a request with throttling and retries.

        Server and network errors are retried with exponential backoff; 429
        responses wait for ``Retry-After`` unless ``handle_rate_limit`` is False.
        """
        await self._throttle_request()
        logger.debug("%s - %s %s", params.log_context, method, url)

        client = self._client_for(params.proxy)
        try:
            response = await client.request(
                method,
                url,
                params=query,
                json=json_body,
                headers=self._headers(params),
            )
        except httpx.RequestError as e:
            if retry_count < self.config.max_retries:
                await self._backoff(retry_count)
                return await self._request(
                    method, url, params, query, json_body, handle_rate_limit, retry_count + 1
                )
            raise APIError(
                f"Network error: {e}",
                details={"error": str(e), "url": url},
            ) from e

        if response.status_code == 429 and handle_rate_limit:
            if retry_count >= self.config.max_retries:
                raise RateLimitError(
                    "Rate limit exceeded and max retries reached",
                    details={"url": url, "retry_count": retry_count},
                    retry_after=self._retry_after(response),
                )
            wait_time = self._retry_after(response)
            logger.warning("Rate limited. Waiting %d seconds before retry.", wait_time)
            await asyncio.sleep(wait_time)
            return await self._request(
                method, url, params, query, json_body, handle_rate_limit, retry_count + 1
            )

        if response.status_code >= 500 and retry_count < self.config.max_retries:
            await self._backoff(retry_count)
            return await self._request(
                method, url, params, query, json_body, handle_rate_limit, retry_count + 1
            )

        return response

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.status_code < 400:
            return

        url = str(response.request.url) if response.request else ""
        payload = self._error_payload(response)
        details = {
            "status_code": response.status_code,
            "url": url,
            "response": response.text[:500],
        }
        if payload.get("code"):
            details["code"] = payload["code"]

        if response.status_code in (401, 403):
            raise AuthError(
                payload.get("message") or "LinkedIn session is no longer valid",
                details=details,
            )
        if response.status_code == 429:
            raise RateLimitError(details=details, retry_after=self._retry_after(response))
        if response.status_code == 404:
            raise APIError("Resource not found", details=details, status_code=404)
        raise APIError(
            payload.get("message") or f"HTTP error {response.status_code}",
            details=details,
            status_code=response.status_code,
        )

    @staticmethod
    def _error_payload(response: httpx.Response) -> dict[str, Any]:
        if response.status_code < 400 or not response.text:
            return {}
        try:
            payload = response.json()
        except json.JSONDecodeError:
            return {}
        if not isinstance(payload, dict):
            return {}
        data = payload.get("data")
        if isinstance(data, dict) and data.get("code"):
            return {**payload, "code": data["code"]}
        return payload

    @staticmethod
    def _retry_after(response: httpx.Response) -> int:
        retry_after = response.headers.get("Retry-After")
        if retry_after:
            try:
                return int(retry_after)
            except ValueError:
                return 60
        reset = response.headers.get("X-RateLimit-Reset")
        if reset:
            try:
                return max(0, int(reset) - int(datetime.now().timestamp()))
            except ValueError:
                return 60
        return 60

    async def _backoff(self, retry_count: int) -> None:
        wait_time = 2**retry_count  # 1s, 2s, 4s
        logger.warning(
            "Request failed. Retrying in %ds (attempt %d/%d)",
            wait_time,
            retry_count + 1,
            self.config.max_retries,
        )
        await asyncio.sleep(wait_time)

    async def _throttle_request(self) -> None:
        """Keep at least ``request_delay`` seconds between requests."""
        loop = asyncio.get_running_loop()
        if self._last_request_time is not None:
            elapsed = loop.time() - self._last_request_time
            if elapsed < self.config.request_delay:
                wait_time = self.config.request_delay - elapsed
                logger.debug("Throttling request: waiting %.2fs", wait_time)
                await asyncio.sleep(wait_time)
        self._last_request_time = loop.time()
