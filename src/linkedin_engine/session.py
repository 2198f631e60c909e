"""Session lookup and resolution into per-call API parameters."""

from typing import Optional

from .errors import SessionError
from .interfaces import SessionStore
from .logging_config import get_logger, integration_context
from .models import ApiParams, Session

logger = get_logger(__name__)


class InMemorySessionStore:
    """Session store backed by a dictionary keyed by integration id."""

    def __init__(self, sessions: Optional[dict[str, Session]] = None):
        self._sessions: dict[str, Session] = dict(sessions or {})

    def put(self, integration_id: str, session: Session) -> None:
        self._sessions[integration_id] = session

    def remove(self, integration_id: str) -> None:
        self._sessions.pop(integration_id, None)

    async def get_session(self, integration_id: str) -> Optional[Session]:
        return self._sessions.get(integration_id)


async def resolve_params(store: SessionStore, integration_id: str) -> ApiParams:
    """Build the credentials for one remote call.

    Raises:
        SessionError: If the integration has no stored session
    """
    session = await store.get_session(integration_id)
    if session is None or not session.cookies:
        logger.debug("%s - No session found", integration_context(integration_id))
        raise SessionError(integration_id)

    return ApiParams(
        cookies=dict(session.cookies),
        user_agent=session.user_agent,
        proxy=session.proxy,
        log_context=integration_context(integration_id),
    )
