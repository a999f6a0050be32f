"""
Tests for routing session transitions to screens.
"""

import pytest

from bookshelf_client.http import ApiCall, UnauthorizedError
from bookshelf_client.navigation import NavigationBinder, Screen, StackNavigator


class RecordingNavigator(StackNavigator):
    def __init__(self, initial=Screen.SPLASH):
        super().__init__(initial)
        self.commands = []

    def navigate(self, screen):
        self.commands.append(screen)
        super().navigate(screen)


@pytest.fixture
def navigator():
    return RecordingNavigator()


@pytest.fixture
def binder(session, navigator):
    binder = NavigationBinder(session, navigator)
    binder.bind()
    yield binder
    binder.unbind()


class TestStackNavigator:
    def test_push_and_back(self):
        navigator = StackNavigator(Screen.LOGIN)

        navigator.push(Screen.REGISTER)
        assert navigator.current_screen is Screen.REGISTER
        assert navigator.back() is Screen.LOGIN
        assert navigator.back() is Screen.LOGIN

    def test_navigate_replaces_history(self):
        navigator = StackNavigator(Screen.LOGIN)
        navigator.push(Screen.REGISTER)

        navigator.navigate(Screen.LIBRARY)

        assert navigator.history == [Screen.LIBRARY]

    def test_push_same_screen_is_ignored(self):
        navigator = StackNavigator(Screen.LOGIN)
        navigator.push(Screen.LOGIN)

        assert navigator.history == [Screen.LOGIN]


class TestNavigationBinder:
    @pytest.mark.asyncio
    async def test_login_routes_to_library(self, session, auth_api, navigator, binder):
        auth_api.login.return_value = "tok123"

        await session.login("user@example.com", "secret1")

        assert navigator.current_screen is Screen.LIBRARY

    @pytest.mark.asyncio
    async def test_logout_routes_to_login(self, session, auth_api, navigator, binder):
        auth_api.login.return_value = "tok123"
        await session.login("user@example.com", "secret1")

        await session.logout()

        assert navigator.commands == [Screen.LIBRARY, Screen.LOGIN]

    @pytest.mark.asyncio
    async def test_unauthorized_response_routes_to_login(self, session, auth_api, navigator, binder):
        auth_api.login.return_value = "tok123"
        await session.login("user@example.com", "secret1")

        await session.handle_api_error(ApiCall("GET", "/livros"), UnauthorizedError(401, "HTTP 401"))

        assert navigator.current_screen is Screen.LOGIN

    @pytest.mark.asyncio
    async def test_already_on_target_is_noop(self, session, auth_api):
        navigator = RecordingNavigator(initial=Screen.LOGIN)
        NavigationBinder(session, navigator).bind()
        auth_api.me.side_effect = UnauthorizedError(401, "HTTP 401")

        await session.bootstrap()

        assert navigator.commands == []

    @pytest.mark.asyncio
    async def test_sync_routes_current_state(self, session, store, navigator):
        await store.set_token("tok123")
        await session.bootstrap()
        late_binder = NavigationBinder(session, navigator)

        late_binder.sync()

        assert navigator.current_screen is Screen.LIBRARY

    @pytest.mark.asyncio
    async def test_sync_while_loading_stays_put(self, session, navigator):
        NavigationBinder(session, navigator).sync()

        assert navigator.current_screen is Screen.SPLASH

    @pytest.mark.asyncio
    async def test_unbind_stops_routing(self, session, auth_api, navigator, binder):
        binder.unbind()
        auth_api.login.return_value = "tok123"

        await session.login("user@example.com", "secret1")

        assert navigator.commands == []
