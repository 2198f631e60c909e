"""Throttled dispatcher for campaign actions.

Actions of one request run strictly one after another with a random pause
before each, so the remote platform sees a human-paced stream. Every
dispatched action is reported to the notifier exactly once; actions the API
cannot perform are handed to browser automation instead.
"""

import asyncio
import random
from typing import Any, Awaitable, Callable, Optional

from .config import DispatchConfig
from .interfaces import BrowserAutomation, Notifier, SessionStore
from .logging_config import get_logger, integration_context, log_error_with_details
from .manager import NO_INVITATION_ID, LinkedinManager
from .models import (
    API_ACTIONS,
    Action,
    ActionFailure,
    ActionResult,
    ActionState,
    ActionSuccess,
    ActionType,
    ConversationTarget,
    DispatchOutcome,
    EngineRequest,
    InviteStatus,
    Profile,
    RecipientTarget,
)

logger = get_logger(__name__)

PROFILE_URL = "https://www.linkedin.com/in/{public_id}"
DEFAULT_INMAIL_FAILURE = "Not Enough InMail Credit"


def profile_summary(profile: Profile) -> dict[str, Any]:
    """Flatten a profile into the payload reported for PROFILE_FETCH."""
    return {
        "urn_id": profile.urn_id,
        "public_id": profile.public_identifier,
        "first_name": profile.first_name,
        "last_name": profile.last_name,
        "headline": profile.headline,
        "profile_url": PROFILE_URL.format(public_id=profile.public_identifier),
        "profile_picture": profile.profile_pic_url,
        "country": profile.country,
        "company": profile.company,
        "current_position": profile.current_position,
        "still_working": profile.still_working,
        "school": profile.school,
        "industries": list(profile.industries),
        "email": profile.email,
        "phone": profile.phone_numbers[0].number if profile.phone_numbers else None,
    }


def inmail_failure_message(message: Optional[str], reason: Optional[str]) -> str:
    """First sentence of the remote error, else the reason code."""
    first = (message or "").split(".")[0].strip()
    return first or reason or DEFAULT_INMAIL_FAILURE


class ActionDispatcher:
    """Runs the actions of an engine request against the integration manager."""

    def __init__(
        self,
        manager: LinkedinManager,
        notifier: Notifier,
        sessions: SessionStore,
        browser: BrowserAutomation,
        config: Optional[DispatchConfig] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        """Initialize the dispatcher.

        Args:
            manager: Integration manager performing the operations
            notifier: Receives one result per dispatched action
            sessions: Session lookup for the integration
            browser: Fallback for actions the API cannot perform
            config: Inter-action delay bounds
            sleep: Awaitable used for the inter-action delay
            rng: Source of the random delay
        """
        self.manager = manager
        self.notifier = notifier
        self.sessions = sessions
        self.browser = browser
        self.config = config or DispatchConfig()
        self.sleep = sleep
        self.rng = rng or random.Random()
        self._handlers: dict[
            ActionType,
            Callable[[EngineRequest, Action], Awaitable[Optional[ActionResult]]],
        ] = {
            ActionType.PROFILE_FETCH: self._profile_fetch,
            ActionType.SEND_MESSAGE: self._send_message,
            ActionType.LIKE_POST: self._like_post,
            ActionType.ENDORSE_SKILL: self._endorse_skill,
            ActionType.FOLLOW_REQUEST: self._follow,
            ActionType.SEND_INVITE: self._send_invite,
            ActionType.WITHDRAW_INVITE: self._withdraw_invite,
            ActionType.SEND_INEMAIL: self._send_inmail,
        }

    async def handle_engine_request(self, request: EngineRequest) -> list[DispatchOutcome]:
        """Process every action of a request.

        Returns:
            One DispatchOutcome per action, in request order
        """
        context = integration_context(request.integration_id, request.campaign_id)
        logger.info("%s - Handling %d actions", context, len(request.actions))

        session = await self.sessions.get_session(request.integration_id)
        if session is None or not session.cookies:
            logger.error("%s - No session found", context)
            outcomes = []
            for action in request.actions:
                failure = ActionFailure(
                    message="No session found", should_retry=True, reason="NO_SESSION"
                )
                await self._report(request, action, failure)
                outcomes.append(DispatchOutcome(action, ActionState.FAILED, failure))
            return outcomes

        api_actions = [a for a in request.actions if a.type in API_ACTIONS]
        browser_actions = [a for a in request.actions if a.type not in API_ACTIONS]

        outcomes_by_action: dict[int, DispatchOutcome] = {}
        for outcome in await self._hand_off(request, browser_actions, context):
            outcomes_by_action[id(outcome.action)] = outcome

        for action in api_actions:
            delay = self.rng.uniform(self.config.min_delay, self.config.max_delay)
            logger.debug("%s - Waiting %.1fs before %s", context, delay, action.type.value)
            await self.sleep(delay)
            outcomes_by_action[id(action)] = await self._dispatch(request, action, context)

        return [outcomes_by_action[id(action)] for action in request.actions]

    async def _hand_off(
        self, request: EngineRequest, actions: list[Action], context: str
    ) -> list[DispatchOutcome]:
        """Submit actions the API cannot perform to browser automation.

        When the submission itself fails, the actions are reported as
        retryable failures instead.
        """
        if not actions:
            return []
        logger.warning(
            "%s - Handing %d unsupported actions to browser automation",
            context,
            len(actions),
        )
        try:
            await self.browser.submit(
                EngineRequest(
                    integration_id=request.integration_id,
                    campaign_id=request.campaign_id,
                    actions=actions,
                )
            )
        except Exception as e:
            log_error_with_details(logger, e, context={"operation": "browser_submit"})
            outcomes = []
            for action in actions:
                failure = ActionFailure(
                    message="Unable to hand action to browser automation",
                    should_retry=True,
                )
                await self._report(request, action, failure)
                outcomes.append(DispatchOutcome(action, ActionState.FAILED, failure))
            return outcomes
        return [DispatchOutcome(action, ActionState.HANDED_OFF) for action in actions]

    async def _report(
        self, request: EngineRequest, action: Action, result: ActionResult
    ) -> None:
        """Send one action result; a notifier failure never stops the queue."""
        try:
            await self.notifier.on_action_result(
                request.integration_id, request.campaign_id, action, result
            )
        except Exception as e:
            log_error_with_details(
                logger,
                e,
                context={
                    "operation": "on_action_result",
                    "action": action.type.value,
                    "profile_id": action.profile_id,
                },
            )

    async def _dispatch(
        self, request: EngineRequest, action: Action, context: str
    ) -> DispatchOutcome:
        logger.info(
            "%s - Dispatching %s for %s", context, action.type.value, action.profile_id
        )
        try:
            result = await self._handlers[action.type](request, action)
        except Exception as e:
            log_error_with_details(
                logger,
                e,
                context={"action": action.type.value, "profile_id": action.profile_id},
            )
            result = ActionFailure(
                message=f"Unexpected error: {getattr(e, 'message', None) or e}",
                should_retry=False,
            )

        if result is None:
            return DispatchOutcome(action, ActionState.HANDED_OFF)

        await self._report(request, action, result)
        if result.success:
            logger.info("%s - %s succeeded", context, action.type.value)
            return DispatchOutcome(action, ActionState.SUCCEEDED, result)

        logger.warning(
            "%s - %s failed: %s (retry=%s)",
            context,
            action.type.value,
            result.message,
            result.should_retry,
        )
        return DispatchOutcome(action, ActionState.FAILED, result)

    # Handlers return None when the action was handed to browser automation

    async def _profile_fetch(self, request: EngineRequest, action: Action) -> ActionResult:
        profile = await self.manager.get_profile(request.integration_id, action.profile_id)
        if profile is None or not profile.public_identifier:
            return ActionFailure(message="Unable to fetch profile", should_retry=True)
        return ActionSuccess(data=profile_summary(profile))

    async def _send_message(self, request: EngineRequest, action: Action) -> ActionResult:
        conversation_urn = action.payload.get("conversation_urn")
        if conversation_urn:
            target = ConversationTarget(conversation_urn=conversation_urn)
        else:
            target = RecipientTarget(recipient_urn=action.profile_id)
        sent = await self.manager.send_message(
            request.integration_id, target, action.payload.get("message", "")
        )
        if not sent:
            return ActionFailure(message="Unable to send message", should_retry=False)
        return ActionSuccess()

    async def _like_post(self, request: EngineRequest, action: Action) -> ActionResult:
        if not await self.manager.send_reaction(request.integration_id, action.profile_id):
            return ActionFailure(
                message="Unable to react to any kind of post", should_retry=False
            )
        return ActionSuccess()

    async def _endorse_skill(self, request: EngineRequest, action: Action) -> ActionResult:
        if not await self.manager.endorse_skill(request.integration_id, action.profile_id):
            return ActionFailure(message="Unable to endorse post", should_retry=False)
        return ActionSuccess()

    async def _follow(self, request: EngineRequest, action: Action) -> ActionResult:
        if not await self.manager.follow(request.integration_id, action.profile_id):
            return ActionFailure(message="Unable to follow", should_retry=False)
        return ActionSuccess()

    async def _send_invite(self, request: EngineRequest, action: Action) -> ActionResult:
        result = await self.manager.send_invite(
            request.integration_id, action.profile_id, action.payload.get("message")
        )
        if result.sent:
            return ActionSuccess()
        if result.status == InviteStatus.WEEKLY_LIMIT_REACHED:
            return ActionFailure(
                message="Unable to send invitation for a day. Limit reached.",
                should_retry=True,
                reason=InviteStatus.WEEKLY_LIMIT_REACHED.value,
            )
        return ActionFailure(
            message="Unable to send invitation. Will retry again.", should_retry=True
        )

    async def _withdraw_invite(
        self, request: EngineRequest, action: Action
    ) -> Optional[ActionResult]:
        result = await self.manager.withdraw_invitation(
            request.integration_id,
            invitation_id=action.payload.get("invitation_id") or NO_INVITATION_ID,
            mailbox_item_id=action.payload.get("mailbox_item_id"),
            urn_id=action.profile_id,
        )
        if result.success:
            return ActionSuccess(
                data={"mailbox_item_id": result.mailbox_item_id, "urn_id": result.urn_id}
            )

        logger.warning(
            "%s - Withdraw failed for %s, handing to browser automation",
            integration_context(request.integration_id, request.campaign_id),
            action.profile_id,
        )
        await self.browser.submit(
            EngineRequest(
                integration_id=request.integration_id,
                campaign_id=request.campaign_id,
                actions=[action],
            )
        )
        return None

    async def _send_inmail(self, request: EngineRequest, action: Action) -> ActionResult:
        payload = action.payload
        result = await self.manager.send_inmail(
            request.integration_id,
            target_urn=payload.get("recipient_urn") or action.profile_id,
            subject=payload.get("subject", ""),
            message=payload.get("message", ""),
            mailbox_urn=payload.get("mailbox_urn"),
            is_premium=bool(payload.get("is_premium", False)),
        )
        if result.success:
            return ActionSuccess(data={"conversation_urn": result.conversation_urn})
        return ActionFailure(
            message=inmail_failure_message(result.message, result.reason),
            should_retry=False,
            reason=result.reason,
        )
