from .auth_api import AuthApi

__all__ = ["AuthApi"]
