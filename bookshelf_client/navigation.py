from __future__ import annotations

from enum import Enum
import logging
from typing import Callable, Protocol

from bookshelf_client.models import SessionState
from bookshelf_client.session import SessionManager

logger = logging.getLogger(__name__)


class Screen(str, Enum):
    SPLASH = "splash"
    LOGIN = "login"
    REGISTER = "register"
    LIBRARY = "library"


class Navigator(Protocol):
    @property
    def current_screen(self) -> Screen: ...

    def navigate(self, screen: Screen) -> None: ...


class StackNavigator:
    """In-memory screen stack, usable headless."""

    def __init__(self, initial: Screen = Screen.SPLASH):
        self._stack: list[Screen] = [initial]

    @property
    def current_screen(self) -> Screen:
        return self._stack[-1]

    @property
    def history(self) -> list[Screen]:
        return list(self._stack)

    def navigate(self, screen: Screen) -> None:
        self.replace(screen)

    def replace(self, screen: Screen) -> None:
        self._stack = [screen]

    def push(self, screen: Screen) -> None:
        if self._stack[-1] is screen:
            return
        self._stack.append(screen)

    def back(self) -> Screen:
        if len(self._stack) > 1:
            self._stack.pop()
        return self._stack[-1]


SCREEN_FOR_STATE = {
    SessionState.AUTHENTICATED: Screen.LIBRARY,
    SessionState.UNAUTHENTICATED: Screen.LOGIN,
}


class NavigationBinder:
    def __init__(self, session: SessionManager, navigator: Navigator):
        self._session = session
        self._navigator = navigator
        self._unsubscribe: Callable[[], None] | None = None

    def bind(self) -> None:
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self._session.subscribe(self._on_state_change)

    def unbind(self) -> None:
        if self._unsubscribe is None:
            return
        self._unsubscribe()
        self._unsubscribe = None

    def sync(self) -> None:
        self._route(self._session.state)

    def _on_state_change(self, previous: SessionState, current: SessionState) -> None:
        self._route(current)

    def _route(self, state: SessionState) -> None:
        target = SCREEN_FOR_STATE.get(state)
        if target is None:
            return
        if self._navigator.current_screen is target:
            return
        logger.debug("Navigating to %s", target.value)
        self._navigator.navigate(target)
