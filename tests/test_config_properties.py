"""Property-based tests for configuration validation."""

import pytest
from hypothesis import given
from hypothesis import strategies as st
from pydantic import ValidationError

from linkedin_engine.config import (
    MAX_CONNECTION_BATCH,
    MAX_MESSAGE_BATCH,
    MAX_SEARCH_BATCH,
    ClientConfig,
    DispatchConfig,
    EngineConfig,
    PaginationConfig,
    SessionConfig,
)
from linkedin_engine.errors import ConfigError


@given(
    timeout=st.one_of(
        st.floats(max_value=4.99, allow_nan=False),
        st.floats(min_value=120.01, allow_nan=False),
    )
)
def test_invalid_timeout_detection(timeout: float) -> None:
    """Timeouts outside 5-120 seconds are rejected."""
    with pytest.raises(ValidationError) as exc_info:
        ClientConfig(timeout=timeout)

    assert "timeout" in str(exc_info.value).lower()


@given(max_retries=st.one_of(st.integers(max_value=-1), st.integers(min_value=11)))
def test_invalid_max_retries_detection(max_retries: int) -> None:
    with pytest.raises(ValidationError):
        ClientConfig(max_retries=max_retries)


def test_base_urls_are_normalized() -> None:
    config = ClientConfig(
        api_base_url="https://example.test/voyager/api/",
        sales_base_url=" https://example.test/sales-api ",
    )
    assert config.api_base_url == "https://example.test/voyager/api"
    assert config.sales_base_url == "https://example.test/sales-api"


def test_base_url_must_be_http() -> None:
    with pytest.raises(ValidationError):
        ClientConfig(api_base_url="ftp://example.test")


@given(batch=st.integers(min_value=MAX_CONNECTION_BATCH + 1, max_value=10_000))
def test_connection_batch_is_capped(batch: int) -> None:
    with pytest.raises(ValidationError):
        PaginationConfig(connection_batch=batch)


@given(batch=st.integers(min_value=MAX_MESSAGE_BATCH + 1, max_value=10_000))
def test_message_batch_is_capped(batch: int) -> None:
    with pytest.raises(ValidationError):
        PaginationConfig(message_batch=batch)


@given(batch=st.integers(min_value=MAX_SEARCH_BATCH + 1, max_value=10_000))
def test_search_batch_is_capped(batch: int) -> None:
    with pytest.raises(ValidationError):
        PaginationConfig(search_batch=batch)


def test_pagination_defaults() -> None:
    config = PaginationConfig()
    assert config.connection_batch == 100
    assert config.invitation_batch == 100
    assert config.message_batch == 20
    assert config.search_batch == 50
    assert config.delivery_chunk_size == 25


def test_delivery_chunk_size_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        PaginationConfig(delivery_chunk_size=0)


@given(
    low=st.floats(min_value=0, max_value=1000, allow_nan=False),
    high=st.floats(min_value=0, max_value=1000, allow_nan=False),
)
def test_dispatch_delay_range(low: float, high: float) -> None:
    """An inverted delay range is rejected, any other range is accepted."""
    if low > high:
        with pytest.raises(ValidationError) as exc_info:
            DispatchConfig(min_delay=low, max_delay=high)
        assert "min_delay" in str(exc_info.value)
    else:
        config = DispatchConfig(min_delay=low, max_delay=high)
        assert config.min_delay <= config.max_delay


def test_dispatch_defaults() -> None:
    config = DispatchConfig()
    assert config.min_delay == 15
    assert config.max_delay == 45


def test_session_requires_cookie() -> None:
    with pytest.raises(ValidationError) as exc_info:
        SessionConfig()

    assert "LINKEDIN_COOKIE" in str(exc_info.value)


@given(blank=st.from_regex(r"^\s*$", fullmatch=True))
def test_session_blank_cookie_is_missing(blank: str) -> None:
    with pytest.raises(ValidationError):
        SessionConfig(li_at=blank)


def test_session_cookies_quote_jsessionid() -> None:
    session = SessionConfig(li_at=" AQEDtoken ", jsessionid='"ajax:123"', proxy="")

    assert session.li_at == "AQEDtoken"
    assert session.jsessionid == "ajax:123"
    assert session.proxy is None
    assert session.cookies() == {"li_at": "AQEDtoken", "JSESSIONID": '"ajax:123"'}


def test_session_cookies_without_jsessionid() -> None:
    assert SessionConfig(li_at="AQEDtoken").cookies() == {"li_at": "AQEDtoken"}


def test_engine_config_defaults() -> None:
    config = EngineConfig()

    assert config.session is None
    assert config.verbose is False
    assert config.pagination.delivery_chunk_size == 25
    assert config.client.max_retries == 3


def test_require_session_without_cookie() -> None:
    with pytest.raises(ConfigError) as exc_info:
        EngineConfig().require_session()

    assert exc_info.value.error_type == "config"
    assert "LINKEDIN_COOKIE" in exc_info.value.message


def test_require_session_returns_credentials() -> None:
    session = SessionConfig(li_at="AQEDtoken")

    assert EngineConfig(session=session).require_session() is session
