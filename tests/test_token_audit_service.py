from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest
import requests

from config import config
from integrations.meta_graph_client import MetaApiError, MetaRateLimitError, MetaTokenError
from services.token_audit_service import analyze_developer_token, audit_client_tokens, classify_meta_token

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


class TestAnalyzeDeveloperToken:
    def test_missing(self):
        assert analyze_developer_token(None)["token_type"] == "missing"

    def test_test_token(self):
        out = analyze_developer_token("TEST_abc123")
        assert out["token_type"] == "test"
        assert out["confidence"] == "high"
        assert out["needs_production_token"]
        assert out["action_required"]

    def test_production_shape(self):
        out = analyze_developer_token("ABCDEFGHIJKLMNOPQRSTUV")
        assert out["token_type"] == "production"
        assert out["confidence"] == "high"
        assert not out["needs_production_token"]

    def test_unknown(self):
        out = analyze_developer_token("short")
        assert out["token_type"] == "unknown"
        assert out["indicators"] == []


class TestClassifyMetaToken:
    def test_permanent_system_user(self):
        out = classify_meta_token({"type": "SYSTEM_USER", "is_valid": True, "expires_at": 0,
                                   "scopes": ["ads_read", "ads_management"]}, now=NOW)
        assert out["is_permanent"]
        assert out["is_long_lived"]
        assert out["days_remaining"] is None
        assert out["missing_scopes"] == []

    def test_short_lived(self):
        expires = int((NOW + timedelta(hours=2)).timestamp())
        out = classify_meta_token({"type": "USER", "is_valid": True, "expires_at": expires}, now=NOW)
        assert not out["is_permanent"]
        assert not out["is_long_lived"]
        assert out["days_remaining"] == pytest.approx(0.1)
        assert out["missing_scopes"] == ["ads_read"]

    def test_long_lived(self):
        expires = int((NOW + timedelta(days=60)).timestamp())
        out = classify_meta_token({"type": "USER", "is_valid": True, "expires_at": expires}, now=NOW)
        assert out["is_long_lived"]
        assert out["days_remaining"] == 60.0


def test_audit_client_tokens(monkeypatch):
    monkeypatch.setattr(config, "META_SYSTEM_USER_TOKEN", None)
    good = Mock()
    good.debug_token.return_value = {"type": "SYSTEM_USER", "is_valid": True, "expires_at": 0, "scopes": ["ads_read"]}
    bad = Mock()
    bad.debug_token.side_effect = MetaTokenError("Invalid OAuth access token", code=190)
    factory = Mock(side_effect=[good, bad])

    clients = [
        {"id": "1", "name": "A", "system_user_token": "sys"},
        {"id": "2", "name": "B", "meta_access_token": "own"},
        {"id": "3", "name": "C"},
    ]
    rows = audit_client_tokens(clients, client_factory=factory)

    assert rows[0]["token_source"] == "system_user"
    assert rows[0]["needs_attention"] is False
    assert rows[1]["token_source"] == "client"
    assert "Invalid OAuth" in rows[1]["error"]
    assert rows[1]["status"] == "invalid"
    assert rows[2]["error"].startswith("No Meta token")
    assert rows[0]["status"] == "valid"
    assert rows[2]["status"] is None
    assert factory.call_count == 2


def _debug_ok():
    graph = Mock()
    graph.debug_token.return_value = {"type": "SYSTEM_USER", "is_valid": True, "expires_at": 0, "scopes": ["ads_read"]}
    return graph


def _debug_raises(exc):
    graph = Mock()
    graph.debug_token.side_effect = exc
    return graph


def test_network_error_does_not_stop_audit():
    factory = Mock(side_effect=[_debug_raises(requests.exceptions.ConnectionError("connection reset")), _debug_ok()])
    clients = [
        {"id": "1", "name": "A", "system_user_token": "t1"},
        {"id": "2", "name": "B", "system_user_token": "t2"},
    ]
    rows = audit_client_tokens(clients, client_factory=factory)

    assert len(rows) == 2
    assert rows[0]["error"] == "connection reset"
    assert rows[0]["status"] is None
    assert rows[1]["status"] == "valid"


@pytest.mark.parametrize("graph,expected", [
    (_debug_raises(MetaTokenError("expired", code=190)), "invalid"),
    (_debug_raises(MetaRateLimitError("too many calls", code=17)), None),
    (_debug_raises(MetaApiError("service unavailable", code=2)), None),
    (Mock(**{"debug_token.return_value": {"type": "USER", "is_valid": False, "expires_at": 0}}), "invalid"),
])
def test_status_only_set_when_token_state_is_known(graph, expected):
    (row,) = audit_client_tokens([{"id": "1", "name": "A", "meta_access_token": "t"}], client_factory=Mock(return_value=graph))
    assert row["status"] == expected


def test_missing_token_leaves_status_alone(monkeypatch):
    monkeypatch.setattr(config, "META_SYSTEM_USER_TOKEN", None)
    (row,) = audit_client_tokens([{"id": "1", "name": "A"}], client_factory=Mock())
    assert row["error"]
    assert row["status"] is None
