from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, model_validator

from crm_scope.security.scopes import ACTIONS


class AuthConfig(BaseModel):
    # "jwt": HS256 bearer tokens verified with the app secret.
    # "dummy": the bearer token is the integer user id (local development only).
    provider: Literal["jwt", "dummy"] = "jwt"
    authorization_header: str = "Authorization"
    bearer_prefix: str = "Bearer"


class DefaultRule(BaseModel):
    auth_required: bool = True


class RouteRule(BaseModel):
    path: str
    methods: list[str] = Field(default_factory=lambda: ["GET"])

    auth_required: bool | None = None
    module: str | None = None
    action: str | None = None
    # Table the row filter applies to; defaults to `module`.
    resource: str | None = None

    @model_validator(mode="after")
    def _module_and_action_together(self) -> RouteRule:
        if (self.module is None) != (self.action is None):
            raise ValueError(f"route {self.path!r}: module and action must be set together")
        if self.action is not None and self.action not in ACTIONS:
            raise ValueError(f"route {self.path!r}: unknown action {self.action!r}")
        return self

    def normalized_methods(self) -> set[str]:
        return {m.upper() for m in self.methods}


class SecurityConfigModel(BaseModel):
    auth: AuthConfig = Field(default_factory=AuthConfig)
    default: DefaultRule = Field(default_factory=DefaultRule)
    routes: list[RouteRule] = Field(default_factory=list)


@dataclass(frozen=True)
class EffectiveRule:
    """
    Fully-resolved rule (defaults applied) for a particular request.
    """

    auth_required: bool
    module: str | None = None
    action: str | None = None
    resource: str | None = None


def _path_template_to_regex(path_template: str) -> re.Pattern[str]:
    # "/leads/{id}" -> r"^/leads/[^/]+$"
    regex = re.sub(r"\{[^/]+\}", r"[^/]+", path_template)
    return re.compile(rf"^{regex}$")


class SecurityConfig:
    """
    Runtime helper around validated config + route matching.
    """

    def __init__(self, model: SecurityConfigModel):
        self.model = model

        compiled: list[tuple[str, re.Pattern[str], RouteRule]] = []
        for rule in self.model.routes:
            compiled.append((rule.path, _path_template_to_regex(rule.path), rule))

        # Prefer exact matches over templates.
        self._exact_rules: dict[str, list[RouteRule]] = {}
        for r in self.model.routes:
            self._exact_rules.setdefault(r.path, []).append(r)
        self._compiled_rules = compiled

    @property
    def auth(self) -> AuthConfig:
        return self.model.auth

    def match(self, path: str, method: str) -> EffectiveRule:
        """
        Find the best matching rule for (path, method), then apply defaults.
        """

        method = method.upper()
        default = self.model.default

        # 1) exact path match
        for candidate in self._exact_rules.get(path, []):
            if method in candidate.normalized_methods():
                return _effective(candidate, default)

        # 2) template match
        for _template, regex, candidate in self._compiled_rules:
            if method not in candidate.normalized_methods():
                continue
            if regex.match(path):
                return _effective(candidate, default)

        # 3) no match -> defaults
        return EffectiveRule(auth_required=default.auth_required)


def _effective(rule: RouteRule, default: DefaultRule) -> EffectiveRule:
    # A permission-guarded route always needs an identity, whatever the default says.
    inferred_auth_required = default.auth_required or rule.module is not None

    return EffectiveRule(
        auth_required=inferred_auth_required if rule.auth_required is None else rule.auth_required,
        module=rule.module,
        action=rule.action,
        resource=rule.resource or rule.module,
    )


def load_security_config(path: Path) -> SecurityConfig:
    raw_text = path.read_text(encoding="utf-8")
    raw: dict[str, Any] = yaml.safe_load(raw_text) or {}

    if "security" not in raw:
        raise ValueError(f"Missing top-level 'security' key in config: {path}")

    model = SecurityConfigModel.model_validate(raw["security"])
    return SecurityConfig(model)
