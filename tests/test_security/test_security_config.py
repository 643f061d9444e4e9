"""Tests for the YAML route-rule config."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from scopeauth.security.config import EffectiveRule, SecurityConfig, SecurityConfigModel, load_security_config

REPO_CONFIG = Path(__file__).resolve().parents[2] / "config" / "security_config.yaml"


def _config(routes, default_auth=True) -> SecurityConfig:
    return SecurityConfig(
        SecurityConfigModel.model_validate({"default": {"auth_required": default_auth}, "routes": routes})
    )


def test_exact_match_beats_template():
    config = _config(
        [
            {"path": "/reports/{id}", "methods": ["GET"], "permission": "reports:view"},
            {"path": "/reports/summary", "methods": ["GET"], "permission": "summary:view"},
        ]
    )
    assert config.match("/reports/summary", "get").permission == ("summary", "view")
    assert config.match("/reports/42", "GET").permission == ("reports", "view")


def test_method_must_match():
    config = _config([{"path": "/reports", "methods": ["POST"], "permission": "reports:write"}])
    assert config.match("/reports", "GET") == EffectiveRule(auth_required=True)


def test_permission_implies_auth_even_when_default_is_public():
    config = _config([{"path": "/reports", "permission": "Reports:View", "zone_scope": True}], default_auth=False)
    rule = config.match("/reports", "GET")
    assert rule == EffectiveRule(auth_required=True, permission=("reports", "view"), zone_scope=True)
    assert config.match("/other", "GET").auth_required is False


def test_explicit_public_route():
    config = _config([{"path": "/health", "auth_required": False}])
    assert config.match("/health", "GET").auth_required is False


def test_bad_permission_format_rejected():
    with pytest.raises(ValidationError):
        _config([{"path": "/reports", "permission": "reports"}])


def test_load_requires_security_key(tmp_path):
    path = tmp_path / "security.yaml"
    path.write_text("routes: []\n", encoding="utf-8")
    with pytest.raises(ValueError, match="Missing top-level 'security'"):
        load_security_config(path)


def test_repo_config_loads():
    config = load_security_config(REPO_CONFIG)
    assert config.match("/health", "GET").auth_required is False
    assert config.match("/reports/7", "GET").permission == ("reports", "view")
    assert config.match("/reports", "POST").permission == ("reports", "write")
    assert config.match("/me", "GET") == EffectiveRule(auth_required=True)
    assert config.auth.bearer_prefix == "Bearer"
