from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SessionState(str, Enum):
    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


@dataclass(frozen=True)
class AuthState:
    state: SessionState
    error: str | None = None

    @property
    def is_loading(self) -> bool:
        return self.state is SessionState.LOADING

    @property
    def is_signed_in(self) -> bool:
        return self.state is SessionState.AUTHENTICATED
