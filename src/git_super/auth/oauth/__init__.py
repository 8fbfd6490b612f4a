"""OAuth 2.0 interactive grants."""

from git_super.auth.oauth.browser import open_browser
from git_super.auth.oauth.callback import LoopbackCallbackServer, OAuthCallbackResult
from git_super.auth.oauth.flows import DeviceCodeFlow, PKCEFlow
from git_super.auth.oauth.http import OAuthHTTPClient


__all__ = [
    "DeviceCodeFlow",
    "LoopbackCallbackServer",
    "OAuthCallbackResult",
    "OAuthHTTPClient",
    "PKCEFlow",
    "open_browser",
]
