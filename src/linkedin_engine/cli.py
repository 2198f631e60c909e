"""CLI entry point for the LinkedIn engine client."""

import asyncio
import dataclasses
import json
import os
import sys
from enum import Enum
from typing import Any, Optional

import click
from dotenv import load_dotenv
from pydantic import ValidationError

from linkedin_engine import __version__
from linkedin_engine.config import (
    ClientConfig,
    DispatchConfig,
    EngineConfig,
    SessionConfig,
)
from linkedin_engine.dispatcher import ActionDispatcher
from linkedin_engine.errors import ConfigError
from linkedin_engine.logging_config import get_logger, setup_logging
from linkedin_engine.manager import LinkedinManager
from linkedin_engine.models import (
    ALL,
    Action,
    ActionResult,
    ActionState,
    ActionType,
    DeliveryChunk,
    EngineRequest,
    OffsetCursor,
    ResourceKind,
    Session,
    TargetTotal,
    WithdrawResult,
)
from linkedin_engine.session import InMemorySessionStore
from linkedin_engine.voyager_client import VoyagerClient

CLI_INTEGRATION_ID = "cli"

logger = get_logger(__name__)


def to_jsonable(value: Any) -> Any:
    """Convert dataclasses and enums into JSON friendly values."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {k: to_jsonable(v) for k, v in dataclasses.asdict(value).items()}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def echo_event(event: str, **fields: Any) -> None:
    click.echo(json.dumps({"event": event, **to_jsonable(fields)}, default=str))


class EchoNotifier:
    """Notifier writing every event to stdout as one JSON line."""

    async def on_delivery_chunk(
        self,
        integration_id: str,
        resource_kind: ResourceKind,
        chunk: DeliveryChunk,
        scope: dict[str, Any],
    ) -> None:
        echo_event(
            "chunk",
            integration_id=integration_id,
            resource_kind=resource_kind,
            items=chunk.items,
            fetch_completed=chunk.fetch_completed,
            resume_cursor=chunk.resume_cursor,
            error=chunk.error,
            scope=scope,
        )

    async def on_action_result(
        self,
        integration_id: str,
        campaign_id: str,
        action: Action,
        result: ActionResult,
    ) -> None:
        echo_event(
            "action_result",
            integration_id=integration_id,
            campaign_id=campaign_id,
            action_type=action.type,
            profile_id=action.profile_id,
            success=result.success,
            result=result,
        )

    async def on_withdraw_finished(
        self, integration_id: str, invitation_id: str, result: WithdrawResult
    ) -> None:
        echo_event(
            "withdraw_finished",
            integration_id=integration_id,
            invitation_id=invitation_id,
            result=result,
        )


class LoggingBrowserAutomation:
    """Browser automation stand-in that reports the actions it receives."""

    async def submit(self, request: EngineRequest) -> None:
        logger.warning(
            "Browser automation is not available here, %d actions not performed",
            len(request.actions),
        )
        echo_event(
            "browser_handoff",
            integration_id=request.integration_id,
            campaign_id=request.campaign_id,
            actions=request.actions,
        )


def load_config(
    linkedin_cookie: Optional[str],
    jsessionid: Optional[str],
    user_agent: Optional[str],
    proxy: Optional[str],
    request_delay: Optional[float],
    max_retries: Optional[int],
    min_delay: Optional[float],
    max_delay: Optional[float],
    verbose: bool,
) -> EngineConfig:
    """Load configuration from CLI arguments and environment variables.

    CLI arguments take precedence over environment variables. The session is
    left empty when no li_at cookie is available; commands that talk to the
    remote API check for it.

    Raises:
        SystemExit: If configuration validation fails
    """
    # Load environment variables from .env file if it exists
    load_dotenv()

    cookie = linkedin_cookie or os.getenv("LINKEDIN_COOKIE")
    session_dict = {
        "li_at": cookie,
        "jsessionid": jsessionid or os.getenv("LINKEDIN_JSESSIONID"),
        "user_agent": user_agent or os.getenv("LINKEDIN_USER_AGENT"),
        "proxy": proxy or os.getenv("LINKEDIN_PROXY"),
    }

    try:
        client_config = ClientConfig(
            request_delay=(
                request_delay
                if request_delay is not None
                else float(os.getenv("REQUEST_DELAY", "1.0"))
            ),
            max_retries=(
                max_retries if max_retries is not None else int(os.getenv("MAX_RETRIES", "3"))
            ),
        )
        dispatch_config = DispatchConfig(
            min_delay=(
                min_delay if min_delay is not None else float(os.getenv("MIN_ACTION_DELAY", "15"))
            ),
            max_delay=(
                max_delay if max_delay is not None else float(os.getenv("MAX_ACTION_DELAY", "45"))
            ),
        )
        session_config = SessionConfig(**session_dict) if cookie and cookie.strip() else None

        return EngineConfig(
            client=client_config,
            dispatch=dispatch_config,
            session=session_config,
            verbose=verbose,
        )
    except (ValidationError, ValueError) as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)


def build_session_store(config: EngineConfig, integration_id: str) -> InMemorySessionStore:
    store = InMemorySessionStore()
    if config.session is not None:
        store.put(
            integration_id,
            Session(
                cookies=config.session.cookies(),
                user_agent=config.session.user_agent,
                proxy=config.session.proxy,
            ),
        )
    return store


def parse_count(value: str) -> TargetTotal:
    """Parse ``--count``: a positive integer or ALL."""
    if value.upper() == ALL:
        return ALL
    try:
        count = int(value)
    except ValueError:
        raise click.BadParameter(f"expected an integer or ALL, got {value!r}")
    if count < 1:
        raise click.BadParameter("count must be positive")
    return count


def parse_actions(data: Any, campaign_id: str) -> list[Action]:
    """Build actions from a JSON list of ``{"type", "profile_id", "payload"}`` objects."""
    if not isinstance(data, list):
        raise click.BadParameter("actions must be a JSON list", param_hint="ACTIONS_JSON")
    actions = []
    for index, item in enumerate(data):
        if not isinstance(item, dict) or "type" not in item or "profile_id" not in item:
            raise click.BadParameter(
                f"action at index {index} needs 'type' and 'profile_id'",
                param_hint="ACTIONS_JSON",
            )
        try:
            action_type = ActionType(item["type"])
        except ValueError:
            raise click.BadParameter(
                f"unknown action type {item['type']!r}", param_hint="ACTIONS_JSON"
            )
        actions.append(
            Action(
                type=action_type,
                profile_id=str(item["profile_id"]),
                campaign_id=campaign_id,
                audience_id=item.get("audience_id"),
                lead_id=item.get("lead_id"),
                payload=item.get("payload") or {},
            )
        )
    return actions


async def run_fetch(
    config: EngineConfig,
    kind: ResourceKind,
    start: int,
    count: TargetTotal,
    created_after: Optional[int],
    created_before: Optional[int],
    invitation_type: str,
    conversation_urn: Optional[str],
    follow: bool,
) -> int:
    """Run fetch cycles, resuming from each returned cursor when following.

    Returns:
        Exit code: 0 when the last cycle succeeded, 1 when it failed
    """
    notifier = EchoNotifier()
    sessions = build_session_store(config, CLI_INTEGRATION_ID)
    fetched = 0

    async with VoyagerClient(config.client) as client:
        manager = LinkedinManager(client, notifier, sessions, config)
        while True:
            if kind == ResourceKind.CONNECTIONS:
                result = await manager.fetch_connections(
                    CLI_INTEGRATION_ID, count=count, start=start, fetched=fetched
                )
            elif kind == ResourceKind.INVITATIONS:
                result = await manager.fetch_invitations(
                    CLI_INTEGRATION_ID,
                    invitation_type=invitation_type,
                    count=count,
                    start=start,
                    fetched=fetched,
                )
            elif kind == ResourceKind.CONVERSATIONS:
                result = await manager.fetch_conversations(
                    CLI_INTEGRATION_ID,
                    created_after=created_after,
                    created_before=created_before,
                )
            else:
                result = await manager.fetch_messages(
                    CLI_INTEGRATION_ID,
                    conversation_urn,
                    created_before=created_before,
                    created_after=created_after,
                )

            fetched += len(result.items)
            if result.failed:
                return 1
            if result.fetch_completed or not follow:
                return 0

            cursor = result.next_cursor
            if isinstance(cursor, OffsetCursor):
                start = cursor.start
            else:
                created_before = cursor.created_before


async def run_dispatch(config: EngineConfig, request: EngineRequest) -> int:
    notifier = EchoNotifier()
    sessions = build_session_store(config, request.integration_id)

    async with VoyagerClient(config.client) as client:
        manager = LinkedinManager(client, notifier, sessions, config)
        dispatcher = ActionDispatcher(
            manager,
            notifier,
            sessions,
            LoggingBrowserAutomation(),
            config.dispatch,
        )
        outcomes = await dispatcher.handle_engine_request(request)

    failed = [o for o in outcomes if o.state == ActionState.FAILED]
    logger.info(
        "Dispatched %d actions, %d failed", len(outcomes), len(failed)
    )
    return 1 if failed else 0


@click.group()
@click.option(
    "--linkedin-cookie",
    envvar="LINKEDIN_COOKIE",
    help="LinkedIn li_at session cookie",
)
@click.option(
    "--jsessionid",
    envvar="LINKEDIN_JSESSIONID",
    help="JSESSIONID cookie, used as CSRF token",
)
@click.option("--user-agent", envvar="LINKEDIN_USER_AGENT", help="Browser user agent")
@click.option("--proxy", envvar="LINKEDIN_PROXY", help="Proxy URL for all requests")
@click.option(
    "--request-delay",
    type=float,
    default=None,
    help="Minimum delay between HTTP requests in seconds (default: 1.0)",
)
@click.option(
    "--max-retries",
    type=int,
    default=None,
    help="Maximum retry attempts for failed requests (default: 3)",
)
@click.option(
    "--min-delay",
    type=float,
    default=None,
    help="Minimum pause before each action in seconds (default: 15)",
)
@click.option(
    "--max-delay",
    type=float,
    default=None,
    help="Maximum pause before each action in seconds (default: 45)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.version_option(version=__version__, prog_name="linkedin-engine")
@click.pass_context
def main(
    ctx: click.Context,
    linkedin_cookie: Optional[str],
    jsessionid: Optional[str],
    user_agent: Optional[str],
    proxy: Optional[str],
    request_delay: Optional[float],
    max_retries: Optional[int],
    min_delay: Optional[float],
    max_delay: Optional[float],
    verbose: bool,
) -> None:
    """Fetch LinkedIn lists and dispatch campaign actions.

    \b
    AUTHENTICATION:
    ---------------
    1. Log into LinkedIn in your browser
    2. Open DevTools (F12) → Application → Cookies → linkedin.com
    3. Copy the 'li_at' and 'JSESSIONID' cookies
    4. Set LINKEDIN_COOKIE and LINKEDIN_JSESSIONID (or a .env file)

    \b
    EXAMPLES:
    ---------
    linkedin-engine fetch connections --count 200 --follow
    linkedin-engine fetch messages --conversation-urn urn:li:fs_conversation:2-abc
    linkedin-engine --min-delay 5 --max-delay 10 dispatch actions.json --campaign-id c1
    """
    setup_logging(verbose)
    ctx.obj = load_config(
        linkedin_cookie=linkedin_cookie,
        jsessionid=jsessionid,
        user_agent=user_agent,
        proxy=proxy,
        request_delay=request_delay,
        max_retries=max_retries,
        min_delay=min_delay,
        max_delay=max_delay,
        verbose=verbose,
    )


def _require_session(config: EngineConfig) -> None:
    try:
        config.require_session()
    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)


@main.command()
@click.argument(
    "kind",
    type=click.Choice([k.value.lower() for k in ResourceKind], case_sensitive=False),
)
@click.option("--start", type=int, default=0, help="Offset to start from (connections, invitations)")
@click.option("--count", default=ALL, help="Total items to fetch, or ALL (default: ALL)")
@click.option("--created-after", type=int, help="Lower time bound in epoch milliseconds")
@click.option("--created-before", type=int, help="Upper time bound in epoch milliseconds")
@click.option(
    "--invitation-type",
    type=click.Choice(["PENDING", "SENT"], case_sensitive=False),
    default="PENDING",
    help="Invitations to fetch (default: PENDING)",
)
@click.option("--conversation-urn", help="Conversation to read messages from")
@click.option("--follow", is_flag=True, help="Keep fetching until the stream completes")
@click.pass_obj
def fetch(
    config: EngineConfig,
    kind: str,
    start: int,
    count: str,
    created_after: Optional[int],
    created_before: Optional[int],
    invitation_type: str,
    conversation_urn: Optional[str],
    follow: bool,
) -> None:
    """Fetch a list resource and print delivery chunks as JSON lines.

    KIND: connections, invitations, conversations or messages
    """
    resource_kind = ResourceKind(kind.upper())
    if resource_kind == ResourceKind.MESSAGES and not conversation_urn:
        raise click.UsageError("--conversation-urn is required for messages")
    if start < 0:
        raise click.BadParameter("start must be >= 0", param_hint="--start")
    target = parse_count(count)
    _require_session(config)

    try:
        exit_code = asyncio.run(
            run_fetch(
                config,
                resource_kind,
                start,
                target,
                created_after,
                created_before,
                invitation_type.upper(),
                conversation_urn,
                follow,
            )
        )
    except KeyboardInterrupt:
        logger.warning("Fetch interrupted by user")
        exit_code = 1
    sys.exit(exit_code)


@main.command()
@click.argument("actions_json", type=click.File("r"))
@click.option(
    "--integration-id",
    default=CLI_INTEGRATION_ID,
    help="Integration the actions belong to",
)
@click.option("--campaign-id", required=True, help="Campaign the actions belong to")
@click.pass_obj
def dispatch(
    config: EngineConfig,
    actions_json,
    integration_id: str,
    campaign_id: str,
) -> None:
    """Dispatch the campaign actions listed in ACTIONS_JSON ('-' for stdin)."""
    try:
        data = json.load(actions_json)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"invalid JSON: {e}", param_hint="ACTIONS_JSON")
    actions = parse_actions(data, campaign_id)
    _require_session(config)

    request = EngineRequest(
        integration_id=integration_id, campaign_id=campaign_id, actions=actions
    )
    try:
        exit_code = asyncio.run(run_dispatch(config, request))
    except KeyboardInterrupt:
        logger.warning("Dispatch interrupted by user")
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
