"""Lookup table from platform name to its OAuth and publishing adapters."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Optional, Type

import httpx

from social_publisher.clients.base import OAuthClient, Publisher
from social_publisher.clients.facebook import FacebookClient, FacebookOAuthClient
from social_publisher.clients.instagram import InstagramClient, InstagramOAuthClient
from social_publisher.clients.linkedin import LinkedInClient, LinkedInOAuthClient
from social_publisher.clients.pinterest import PinterestClient
from social_publisher.clients.telegram import TelegramClient
from social_publisher.clients.tiktok import TikTokClient
from social_publisher.clients.twitter import TwitterClient, TwitterOAuthClient
from social_publisher.clients.youtube import YouTubeClient
from social_publisher.core.exceptions import SocialMediaException, UnsupportedOperationError
from social_publisher.models.connection import Platform
from social_publisher.utils.http import LoggerLike

if TYPE_CHECKING:
    from social_publisher.core.config import AppSettings


@dataclass(frozen=True)
class PlatformEntry:
    platform: Platform
    publisher: Type[Publisher]
    oauth: Optional[Type[OAuthClient]] = None
    default_connection_type: str = "profile"
    requires_connection: bool = True


PLATFORM_REGISTRY: Dict[Platform, PlatformEntry] = {
    Platform.FACEBOOK: PlatformEntry(
        Platform.FACEBOOK, FacebookClient, FacebookOAuthClient, default_connection_type="page"
    ),
    Platform.TWITTER: PlatformEntry(Platform.TWITTER, TwitterClient, TwitterOAuthClient),
    Platform.LINKEDIN: PlatformEntry(Platform.LINKEDIN, LinkedInClient, LinkedInOAuthClient),
    Platform.INSTAGRAM: PlatformEntry(Platform.INSTAGRAM, InstagramClient, InstagramOAuthClient),
    Platform.TIKTOK: PlatformEntry(Platform.TIKTOK, TikTokClient),
    Platform.YOUTUBE: PlatformEntry(Platform.YOUTUBE, YouTubeClient),
    Platform.PINTEREST: PlatformEntry(Platform.PINTEREST, PinterestClient),
    Platform.TELEGRAM: PlatformEntry(
        Platform.TELEGRAM, TelegramClient, requires_connection=False
    ),
}


def get_platform_entry(name: "Platform | str") -> PlatformEntry:
    try:
        return PLATFORM_REGISTRY[Platform.parse(name)]
    except (KeyError, ValueError) as exc:
        raise SocialMediaException(f"Platform '{name}' is not supported.") from exc


def build_oauth_client(
    name: "Platform | str",
    settings: "AppSettings",
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    logger: Optional[LoggerLike] = None,
) -> OAuthClient:
    """Construct the OAuth flow client for a platform from settings."""
    entry = get_platform_entry(name)
    if entry.oauth is None:
        raise UnsupportedOperationError(
            f"OAuth flow is not implemented for {entry.platform.value}.",
            platform=entry.platform.value,
        )
    return entry.oauth.from_settings(settings, transport=transport, logger=logger)


__all__ = [
    "PLATFORM_REGISTRY",
    "PlatformEntry",
    "build_oauth_client",
    "get_platform_entry",
]
