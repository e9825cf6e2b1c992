"""Expose the platform adapters and their registry."""

from .base import AuthorizationRequest, OAuthClient, PostResult, Publisher, TokenResult
from .facebook import FacebookClient, FacebookOAuthClient
from .instagram import InstagramClient, InstagramOAuthClient
from .linkedin import LinkedInClient, LinkedInOAuthClient
from .pinterest import PinterestClient
from .registry import PLATFORM_REGISTRY, PlatformEntry, build_oauth_client, get_platform_entry
from .telegram import TelegramClient
from .tiktok import TikTokClient
from .twitter import TwitterClient, TwitterOAuthClient
from .youtube import YouTubeClient

__all__ = [
    "AuthorizationRequest",
    "FacebookClient",
    "FacebookOAuthClient",
    "InstagramClient",
    "InstagramOAuthClient",
    "LinkedInClient",
    "LinkedInOAuthClient",
    "OAuthClient",
    "PLATFORM_REGISTRY",
    "PinterestClient",
    "PlatformEntry",
    "PostResult",
    "Publisher",
    "TelegramClient",
    "TikTokClient",
    "TokenResult",
    "TwitterClient",
    "TwitterOAuthClient",
    "YouTubeClient",
    "build_oauth_client",
    "get_platform_entry",
]
