# src/collab_tracker/tracker/api.py

from __future__ import annotations

import logging

from ..core.state import AppState

logger = logging.getLogger(__name__)


async def login(state: AppState, username: str, password: str) -> bool:
    """
    Authenticate and open a provider session for the user.
    Returns False (and leaves any current session alone) on bad credentials.
    """
    if not state.auth.login(username, password):
        return False
    user = state.auth.current_user
    if user is None:
        return False
    await state.provider.open(user)
    return True


async def logout(state: AppState) -> None:
    """Close the provider session first so subscriptions stop before the user is cleared."""
    try:
        await state.provider.close()
    finally:
        state.auth.logout()
