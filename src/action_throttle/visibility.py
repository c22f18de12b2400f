"""Visibility/dismiss controller."""

from __future__ import annotations

import structlog

from .models import DismissPolicy
from .storage import PersistedTimestampStore

logger = structlog.stdlib.get_logger(__name__)

_DISMISSED = "true"


class VisibilityController:
    """Decides whether the throttle UI is shown: eligible and not dismissed.

    Dismissal is independent from cooldown state. Its lifetime follows the
    policy: PERSISTENT keeps it in the store under its own key,
    SESSION_ONLY keeps it for the lifetime of this object, EPHEMERAL drops
    it on every eligibility re-evaluation.
    """

    def __init__(
        self,
        policy: DismissPolicy = DismissPolicy.SESSION_ONLY,
        store: PersistedTimestampStore | None = None,
        key: str = "email_verification_dismissed",
        eligible: bool = False,
    ) -> None:
        if policy == DismissPolicy.PERSISTENT and store is None:
            raise ValueError("the persistent dismiss policy requires a store")
        self._policy = policy
        self._store = store
        self._key = key
        self._eligible = eligible
        self._dismissed = False
        if policy == DismissPolicy.PERSISTENT and store is not None:
            self._dismissed = store.get(key) == _DISMISSED

    @property
    def policy(self) -> DismissPolicy:
        return self._policy

    @property
    def eligible(self) -> bool:
        return self._eligible

    @property
    def dismissed(self) -> bool:
        return self._dismissed

    @property
    def visible(self) -> bool:
        return self._eligible and not self._dismissed

    def set_eligibility(self, eligible: bool) -> bool:
        """Re-evaluate eligibility and return the resulting visibility."""
        self._eligible = eligible
        if self._policy == DismissPolicy.EPHEMERAL:
            self._dismissed = False
        return self.visible

    def dismiss(self) -> None:
        self._dismissed = True
        if self._policy == DismissPolicy.PERSISTENT and self._store is not None:
            if not self._store.set(self._key, _DISMISSED):
                logger.warning("dismissal kept for this session only", key=self._key)

    def restore(self) -> None:
        """Undo a dismissal."""
        self._dismissed = False
        if self._policy == DismissPolicy.PERSISTENT and self._store is not None:
            self._store.remove(self._key)
