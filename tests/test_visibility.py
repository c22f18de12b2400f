"""VisibilityController unit tests."""

import pytest

from action_throttle import (
    DismissPolicy,
    InMemoryStorageBackend,
    PersistedTimestampStore,
    UnavailableStorageBackend,
    VisibilityController,
)

KEY = "email_verification_dismissed"


def test_visible_only_when_eligible() -> None:
    """Shown only while eligible."""
    controller = VisibilityController()
    assert controller.visible is False
    assert controller.set_eligibility(True) is True
    assert controller.set_eligibility(False) is False


def test_dismiss_hides() -> None:
    """Dismissing hides an eligible controller."""
    controller = VisibilityController(eligible=True)
    controller.dismiss()
    assert controller.dismissed is True
    assert controller.visible is False


def test_session_only_dismissal_is_not_persisted() -> None:
    """Session-only dismissal is gone after a reload."""
    backend = InMemoryStorageBackend()
    store = PersistedTimestampStore(backend)
    controller = VisibilityController(DismissPolicy.SESSION_ONLY, store, KEY, eligible=True)
    controller.dismiss()
    controller.set_eligibility(True)
    assert controller.visible is False
    assert backend.get(KEY) is None
    reloaded = VisibilityController(DismissPolicy.SESSION_ONLY, store, KEY, eligible=True)
    assert reloaded.visible is True


def test_persistent_dismissal_survives_reload() -> None:
    """Persistent dismissal is restored after a reload."""
    store = PersistedTimestampStore(InMemoryStorageBackend())
    VisibilityController(DismissPolicy.PERSISTENT, store, KEY, eligible=True).dismiss()
    reloaded = VisibilityController(DismissPolicy.PERSISTENT, store, KEY, eligible=True)
    assert reloaded.dismissed is True
    reloaded.restore()
    again = VisibilityController(DismissPolicy.PERSISTENT, store, KEY, eligible=True)
    assert again.visible is True


def test_persistent_requires_store() -> None:
    """The persistent policy needs a store."""
    with pytest.raises(ValueError):
        VisibilityController(DismissPolicy.PERSISTENT)


def test_persistent_dismissal_without_storage_holds_for_session() -> None:
    """Persistent dismissal without storage still holds in memory."""
    store = PersistedTimestampStore(UnavailableStorageBackend())
    controller = VisibilityController(DismissPolicy.PERSISTENT, store, KEY, eligible=True)
    controller.dismiss()
    assert controller.visible is False


def test_ephemeral_dismissal_resets_on_reevaluation() -> None:
    """Ephemeral dismissal clears on the next eligibility check."""
    controller = VisibilityController(DismissPolicy.EPHEMERAL, eligible=True)
    controller.dismiss()
    assert controller.visible is False
    assert controller.set_eligibility(True) is True


def test_dismissal_does_not_touch_other_keys() -> None:
    """Dismissal writes only its own key."""
    backend = InMemoryStorageBackend()
    backend.set("email_verification_last_sent", "1700000000000")
    controller = VisibilityController(
        DismissPolicy.PERSISTENT, PersistedTimestampStore(backend), KEY, eligible=True
    )
    controller.dismiss()
    controller.restore()
    assert backend.snapshot() == {"email_verification_last_sent": "1700000000000"}
