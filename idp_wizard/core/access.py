"""Access decision gate for identity provider management.

The gate is a pure function of an AccessContext. Callers that need the
"redirect once on denial" behaviour wrap it in an AccessGuard.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping, MutableMapping, Optional

from .roles import PrivilegeTier, RoleScope, TenancyMode, required_roles

logger = logging.getLogger(__name__)

GLOBAL_ORG = "global"
MASTER_REALM = "master"
REALM_MANAGEMENT_SCOPE = "realm-management"


class AccessDecision(str, Enum):
    UNKNOWN = "unknown"
    GRANTED = "granted"
    DENIED = "denied"


@dataclass(frozen=True)
class AccessContext:
    """Snapshot of everything the gate needs to decide.

    Attributes:
        mode: Tenancy mode of the deployment
        current_org: Selected organization id, "global", or None
        home_realm: Realm that issued the operator's token
        target_realm: Realm whose identity providers are being managed
        claims: Role names per scope, or None when no claims were parsed
    """
    mode: TenancyMode
    current_org: Optional[str] = None
    home_realm: str = ""
    target_realm: str = ""
    claims: Optional[Mapping[str, frozenset[str]]] = None


def resolve_scope(context: AccessContext) -> Optional[str]:
    """Return the claims scope whose roles are checked for this context."""
    if TenancyMode(context.mode) is TenancyMode.CLOUD:
        return context.current_org
    if context.home_realm == MASTER_REALM:
        return f"{context.target_realm}-realm"
    return REALM_MANAGEMENT_SCOPE


def _required_for(context: AccessContext) -> tuple[str, ...]:
    if TenancyMode(context.mode) is TenancyMode.CLOUD:
        return required_roles(RoleScope.ORGANIZATION, PrivilegeTier.ADMIN)
    return required_roles(RoleScope.REALM, PrivilegeTier.RESOURCE)


def evaluate(context: AccessContext) -> AccessDecision:
    """Decide whether the operator may manage identity providers.

    Never returns UNKNOWN and never raises for claims content: an absent
    scope or absent claims snapshot means no roles.
    """
    if context.current_org == GLOBAL_ORG:
        return AccessDecision.GRANTED

    if context.claims is None:
        return AccessDecision.DENIED

    scope = resolve_scope(context)
    if not scope:
        return AccessDecision.DENIED

    granted = context.claims.get(scope) or frozenset()
    if all(role in granted for role in _required_for(context)):
        return AccessDecision.GRANTED
    return AccessDecision.DENIED


class AccessGuard:
    """Re-evaluates the gate when the context changes.

    on_denied is invoked exactly once per transition into DENIED; an
    unchanged context is never re-evaluated.
    """

    def __init__(self, on_denied: Callable[[AccessContext], None]):
        self._on_denied = on_denied
        self._context: Optional[AccessContext] = None
        self.decision = AccessDecision.UNKNOWN

    def observe(self, context: AccessContext) -> AccessDecision:
        if self.decision is not AccessDecision.UNKNOWN and context == self._context:
            return self.decision

        previous = self.decision
        self._context = context
        self.decision = evaluate(context)
        if self.decision is AccessDecision.DENIED and previous is not AccessDecision.DENIED:
            self._on_denied(context)
        return self.decision

    def reset(self) -> None:
        """Forget the last decision (session start)."""
        self._context = None
        self.decision = AccessDecision.UNKNOWN


class SessionAccessGuard:
    """AccessGuard variant that keeps its memory in a session mapping.

    Used by the HTTP layer, where each request builds a fresh context but the
    once-per-transition rule must hold for the whole browser session.
    """

    DECISION_KEY = "access_decision"
    FINGERPRINT_KEY = "access_fingerprint"

    def __init__(self, store: MutableMapping, on_denied: Callable[[AccessContext], None]):
        self._store = store
        self._on_denied = on_denied

    @staticmethod
    def fingerprint(context: AccessContext) -> list:
        claims = None
        if context.claims is not None:
            claims = sorted((scope, sorted(roles)) for scope, roles in context.claims.items())
        return [
            TenancyMode(context.mode).value,
            context.current_org,
            context.home_realm,
            context.target_realm,
            claims,
        ]

    @property
    def decision(self) -> AccessDecision:
        return AccessDecision(self._store.get(self.DECISION_KEY, AccessDecision.UNKNOWN.value))

    def observe(self, context: AccessContext) -> AccessDecision:
        fingerprint = self.fingerprint(context)
        previous = self.decision
        if previous is not AccessDecision.UNKNOWN and self._store.get(self.FINGERPRINT_KEY) == fingerprint:
            return previous

        decision = evaluate(context)
        self._store[self.DECISION_KEY] = decision.value
        self._store[self.FINGERPRINT_KEY] = fingerprint
        if decision is AccessDecision.DENIED and previous is not AccessDecision.DENIED:
            logger.warning(
                "Identity provider access denied (mode=%s, org=%s, realm=%s)",
                TenancyMode(context.mode).value,
                context.current_org,
                context.target_realm,
            )
            self._on_denied(context)
        return decision

    def reset(self) -> None:
        self._store.pop(self.DECISION_KEY, None)
        self._store.pop(self.FINGERPRINT_KEY, None)
