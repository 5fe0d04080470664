"""Unit tests for outbound header construction."""

import pytest

from subproxy.core.classifier import CallerClass, FormatSelection
from subproxy.core.headers import (
    FALLBACK_USER_AGENT,
    SPOOFED_USER_AGENTS,
    build_outbound_headers,
    spoofed_user_agent,
    target_origin,
)
from subproxy.core.target import TargetReference


@pytest.fixture
def target():
    """Create a typical subscription target."""
    return TargetReference(
        raw_input="provider.example:8443/api/v1/client/subscribe?token=abc",
        resolved_url="https://provider.example:8443/api/v1/client/subscribe?token=abc",
    )


def test_tool_client_user_agent_passes_through(target):
    """Test that a tool client's own User-Agent reaches the upstream."""
    headers = build_outbound_headers(target, CallerClass.TOOL_CLIENT, FormatSelection.SINGBOX, "clash-verge/v1.7.7")

    assert headers["User-Agent"] == "clash-verge/v1.7.7"


def test_tool_client_headers_are_stable(target):
    """Test that building twice gives the same headers."""
    first = build_outbound_headers(target, CallerClass.TOOL_CLIENT, FormatSelection.CLASH, "Stash/2.4")
    second = build_outbound_headers(target, CallerClass.TOOL_CLIENT, FormatSelection.CLASH, "Stash/2.4")

    assert first == second


@pytest.mark.parametrize("original", ["", None])
def test_tool_client_without_user_agent_gets_fallback(target, original):
    """Test the fallback identity for anonymous tools."""
    headers = build_outbound_headers(target, CallerClass.TOOL_CLIENT, FormatSelection.CLASH, original)

    assert headers["User-Agent"] == FALLBACK_USER_AGENT


@pytest.mark.parametrize("real_ua", ["Mozilla/5.0 Chrome/120", "Mozilla/5.0 Firefox/121", ""])
def test_browser_clash_spoof_ignores_real_identity(target, real_ua):
    """Test that the Clash identity is used whatever the browser sends."""
    headers = build_outbound_headers(target, CallerClass.BROWSER_VIEWER, FormatSelection.CLASH, real_ua)

    assert headers["User-Agent"] == SPOOFED_USER_AGENTS[FormatSelection.CLASH]


def test_each_format_has_its_own_identity(target):
    """Test that every format maps to a distinct spoofed User-Agent."""
    seen = {
        build_outbound_headers(target, CallerClass.BROWSER_VIEWER, fmt, "Mozilla/5.0")["User-Agent"]
        for fmt in FormatSelection
    }

    assert len(seen) == len(FormatSelection)


def test_spoofed_user_agent_defaults_to_clash():
    """Test the designated default identity."""
    assert spoofed_user_agent(None) == SPOOFED_USER_AGENTS[FormatSelection.CLASH]


def test_accept_headers_always_set(target):
    """Test that Accept is */* for both caller classes."""
    for caller in CallerClass:
        headers = build_outbound_headers(target, caller, FormatSelection.CLASH, "x")
        assert headers["Accept"] == "*/*"
        assert "Accept-Language" in headers


def test_referer_and_origin_match_target_origin(target):
    """Test the same-origin disguise."""
    headers = build_outbound_headers(target, CallerClass.TOOL_CLIENT, FormatSelection.CLASH, "x")

    assert headers["Referer"] == "https://provider.example:8443"
    assert headers["Origin"] == "https://provider.example:8443"


def test_unparseable_target_omits_origin_headers():
    """Test that a target without a host does not abort header building."""
    bad = TargetReference(raw_input="", resolved_url="https://")
    headers = build_outbound_headers(bad, CallerClass.TOOL_CLIENT, FormatSelection.CLASH, "x")

    assert "Referer" not in headers
    assert "Origin" not in headers
    assert headers["User-Agent"] == "x"


def test_host_is_never_set(target):
    """Test that Host is left to the transport."""
    headers = build_outbound_headers(target, CallerClass.BROWSER_VIEWER, FormatSelection.CLASH, "Mozilla/5.0")

    assert "host" not in {k.lower() for k in headers}


def test_target_origin_strips_userinfo_and_path():
    """Test origin derivation."""
    assert target_origin("https://user:pw@example.com/sub?x=1") == "https://example.com"
    assert target_origin("http://example.com:8080/a") == "http://example.com:8080"
