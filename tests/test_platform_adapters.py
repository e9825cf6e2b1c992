try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import base64
import json
from datetime import date
from urllib.parse import parse_qs

import httpx
import pytest

from social_publisher.clients import (
    FacebookClient,
    InstagramClient,
    LinkedInClient,
    LinkedInOAuthClient,
    PinterestClient,
    TelegramClient,
    TikTokClient,
    TwitterClient,
    TwitterOAuthClient,
    YouTubeClient,
)
from social_publisher.core.config import PublisherSettings
from social_publisher.core.exceptions import (
    ConnectionMismatchError,
    SocialMediaException,
    UnsupportedOperationError,
    ValidationError,
)

FAST = PublisherSettings(retry_attempts=1, retry_backoff=0)


class RecordingTransport:
    """Collects outbound requests and answers through ``responder``."""

    def __init__(self, responder=None) -> None:
        self.requests: list[httpx.Request] = []
        self._responder = responder or (lambda request: httpx.Response(200, json={}))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        request.read()
        self.requests.append(request)
        return self._responder(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def _form(request: httpx.Request) -> dict:
    return {key: values[0] for key, values in parse_qs(request.content.decode()).items()}


def test_for_connection_rejects_other_platform(store, owner) -> None:
    recorder = RecordingTransport()
    connection = store.upsert(owner, "linkedin", fields={"access_token": "t"})

    with pytest.raises(ConnectionMismatchError) as excinfo:
        FacebookClient.for_connection(connection, transport=recorder.transport)

    assert "Connection platform mismatch" in excinfo.value.message
    assert recorder.requests == []


def test_for_connection_requires_access_token(store, owner) -> None:
    recorder = RecordingTransport()
    connection = store.upsert(owner, "twitter", fields={"platform_user_id": "1"})

    with pytest.raises(SocialMediaException):
        TwitterClient.for_connection(connection, transport=recorder.transport)

    assert recorder.requests == []


def test_get_instance_requires_connection() -> None:
    with pytest.raises(SocialMediaException) as excinfo:
        TwitterClient.get_instance()

    assert "OAuth connection required" in excinfo.value.message


@pytest.mark.anyio
async def test_twitter_accepts_exactly_280_characters() -> None:
    recorder = RecordingTransport(lambda request: httpx.Response(201, json={"data": {"id": "99"}}))
    client = TwitterClient(access_token="t", transport=recorder.transport, publisher_settings=FAST)

    result = await client.share_text("a" * 280)

    assert result.post_id == "99"
    assert len(recorder.requests) == 1
    assert json.loads(recorder.requests[0].content) == {"text": "a" * 280}


@pytest.mark.anyio
async def test_twitter_rejects_281_characters_without_network() -> None:
    recorder = RecordingTransport()
    client = TwitterClient(access_token="t", transport=recorder.transport)

    with pytest.raises(ValidationError) as excinfo:
        await client.share_text("a" * 281)

    assert "maximum length of 280" in excinfo.value.message
    assert recorder.requests == []


@pytest.mark.anyio
async def test_empty_caption_is_rejected_without_network() -> None:
    recorder = RecordingTransport()
    client = TelegramClient(access_token="bot", chat_id="1", transport=recorder.transport)

    with pytest.raises(ValidationError) as excinfo:
        await client.share_text("   ")

    assert excinfo.value.message == "Text content cannot be empty."
    assert recorder.requests == []


@pytest.mark.anyio
async def test_facebook_video_upload_runs_start_transfer_finish() -> None:
    phases: list[str] = []
    video = b"0123456789"

    def responder(request: httpx.Request) -> httpx.Response:
        if request.url.host == "cdn.example.com":
            return httpx.Response(200, content=video)
        body = request.content
        if b"upload_phase=start" in body:
            phases.append("start")
            return httpx.Response(
                200,
                json={
                    "upload_session_id": "sess-1",
                    "video_id": "vid-1",
                    "start_offset": "0",
                    "end_offset": "6",
                },
            )
        if b"upload_phase=finish" in body:
            phases.append("finish")
            return httpx.Response(200, json={"success": True})
        phases.append("transfer")
        if phases.count("transfer") == 1:
            return httpx.Response(200, json={"start_offset": "6", "end_offset": "10"})
        return httpx.Response(200, json={"start_offset": "10", "end_offset": "10"})

    recorder = RecordingTransport(responder)
    client = FacebookClient(
        access_token="user-token",
        page_id="123",
        page_access_token="page-token",
        transport=recorder.transport,
        publisher_settings=FAST,
    )

    result = await client.share_video("Launch clip", "https://cdn.example.com/clip.mp4")

    assert phases == ["start", "transfer", "transfer", "finish"]
    assert result.post_id == "vid-1"
    finish_form = _form(recorder.requests[-1])
    assert finish_form["upload_session_id"] == "sess-1"
    assert finish_form["title"] == "Launch clip"
    assert finish_form["access_token"] == "page-token"


@pytest.mark.anyio
async def test_facebook_resolves_page_token_once() -> None:
    def responder(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, json={"access_token": "page-token", "id": "123"})
        return httpx.Response(200, json={"id": "123_1"})

    recorder = RecordingTransport(responder)
    client = FacebookClient(
        access_token="user-token", page_id="123", transport=recorder.transport
    )

    await client.share_text("first")
    await client.share_url("second", "https://example.com/post")

    methods = [request.method for request in recorder.requests]
    assert methods == ["GET", "POST", "POST"]
    assert _form(recorder.requests[2])["link"] == "https://example.com/post"
    assert _form(recorder.requests[2])["access_token"] == "page-token"


@pytest.mark.anyio
async def test_instagram_share_url_publishes_a_story() -> None:
    def responder(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/media_publish"):
            return httpx.Response(200, json={"id": "ig-post-1"})
        return httpx.Response(200, json={"id": "container-1"})

    recorder = RecordingTransport(responder)
    client = InstagramClient(
        access_token="t", account_id="17841", transport=recorder.transport, publisher_settings=FAST
    )

    result = await client.share_url("Read this", "https://example.com/article")

    assert result.post_id == "ig-post-1"
    container = _form(recorder.requests[0])
    assert container["media_type"] == "STORIES"
    assert container["image_url"].startswith("https://placehold.co/")
    assert _form(recorder.requests[1])["creation_id"] == "container-1"
    assert not any(request.url.path.endswith("/feed") for request in recorder.requests)


@pytest.mark.anyio
async def test_instagram_carousel_requires_two_to_ten_images() -> None:
    recorder = RecordingTransport()
    client = InstagramClient(access_token="t", account_id="17841", transport=recorder.transport)

    with pytest.raises(ValidationError):
        await client.share_carousel("Solo", ["https://example.com/a.jpg"])

    assert recorder.requests == []


@pytest.mark.anyio
async def test_linkedin_share_url_builds_article_payload() -> None:
    recorder = RecordingTransport(
        lambda request: httpx.Response(201, headers={"x-restli-id": "urn:li:share:7"})
    )
    client = LinkedInClient(
        access_token="t", person_urn="urn:li:person:abc", transport=recorder.transport
    )

    result = await client.share_url("Worth a read", "https://news.example.com/story")

    assert result.post_id == "urn:li:share:7"
    body = json.loads(recorder.requests[0].content)
    share = body["specificContent"]["com.linkedin.ugc.ShareContent"]
    assert body["author"] == "urn:li:person:abc"
    assert share["shareMediaCategory"] == "ARTICLE"
    assert share["media"][0]["originalUrl"] == "https://news.example.com/story"
    assert share["media"][0]["title"] == {"text": "Shared from news.example.com"}


@pytest.mark.anyio
async def test_linkedin_company_page_requires_organization() -> None:
    client = LinkedInClient(access_token="t", person_urn="urn:li:person:abc")

    with pytest.raises(SocialMediaException) as excinfo:
        await client.share_to_company_page("Hello", "https://example.com")

    assert "Organization URN not configured" in excinfo.value.message


@pytest.mark.anyio
async def test_telegram_sends_message_to_configured_chat() -> None:
    recorder = RecordingTransport(
        lambda request: httpx.Response(200, json={"ok": True, "result": {"message_id": 5}})
    )
    client = TelegramClient(access_token="123:abc", chat_id="-100", transport=recorder.transport)

    result = await client.share_url("New post", "https://example.com")

    assert result.post_id == "5"
    request = recorder.requests[0]
    assert str(request.url) == "https://api.telegram.org/bot123:abc/sendMessage"
    assert json.loads(request.content) == {
        "chat_id": "-100",
        "text": "New post\n\nhttps://example.com",
    }


@pytest.mark.anyio
async def test_telegram_reports_bot_errors() -> None:
    recorder = RecordingTransport(
        lambda request: httpx.Response(200, json={"ok": False, "description": "chat not found"})
    )
    client = TelegramClient(access_token="123:abc", chat_id="-100", transport=recorder.transport)

    with pytest.raises(SocialMediaException) as excinfo:
        await client.share_text("hello")

    assert "chat not found" in excinfo.value.message


@pytest.mark.anyio
@pytest.mark.parametrize(
    "client, operation, args",
    [
        (TikTokClient(access_token="t"), "share_text", ("hello",)),
        (TikTokClient(access_token="t"), "share_url", ("hello", "https://example.com")),
        (YouTubeClient(access_token="t"), "share_image", ("hello", "https://example.com/a.png")),
        (PinterestClient(access_token="t", board_id="b1"), "share_text", ("hello",)),
    ],
)
async def test_unsupported_shares_raise(client, operation, args) -> None:
    with pytest.raises(UnsupportedOperationError):
        await getattr(client, operation)(*args)


@pytest.mark.anyio
async def test_twitter_text_never_touches_media_upload() -> None:
    recorder = RecordingTransport(lambda request: httpx.Response(201, json={"data": {"id": "1"}}))
    client = TwitterClient(access_token="t", transport=recorder.transport)

    await client.share_text("just words")

    assert [request.url.host for request in recorder.requests] == ["api.twitter.com"]


@pytest.mark.anyio
async def test_twitter_image_uploads_media_then_references_it() -> None:
    image = b"\x89PNG-bytes"

    def responder(request: httpx.Request) -> httpx.Response:
        if request.url.host == "cdn.example.com":
            return httpx.Response(200, content=image)
        if request.url.host == "upload.twitter.com":
            return httpx.Response(200, json={"media_id_string": "m-77"})
        return httpx.Response(201, json={"data": {"id": "tw-1"}})

    recorder = RecordingTransport(responder)
    client = TwitterClient(access_token="t", transport=recorder.transport, publisher_settings=FAST)

    result = await client.share_image("Look", "https://cdn.example.com/pic.png")

    assert result.post_id == "tw-1"
    assert [str(request.url) for request in recorder.requests] == [
        "https://cdn.example.com/pic.png",
        "https://upload.twitter.com/1.1/media/upload.json",
        "https://api.twitter.com/2/tweets",
    ]
    upload = _form(recorder.requests[1])
    assert upload["media_category"] == "tweet_image"
    assert upload["media_data"] == base64.b64encode(image).decode("ascii")
    assert json.loads(recorder.requests[2].content) == {
        "text": "Look",
        "media": {"media_ids": ["m-77"]},
    }


@pytest.mark.anyio
async def test_linkedin_image_registers_uploads_then_posts_asset() -> None:
    upload_url = "https://api.linkedin.com/mediaUpload/abc"
    image = b"jpeg-bytes"

    def responder(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v2/assets":
            return httpx.Response(
                200,
                json={
                    "value": {
                        "asset": "urn:li:digitalmediaAsset:A1",
                        "uploadMechanism": {
                            "com.linkedin.digitalmedia.uploading.MediaUploadHttpRequest": {
                                "uploadUrl": upload_url
                            }
                        },
                    }
                },
            )
        if request.url.host == "cdn.example.com":
            return httpx.Response(200, content=image)
        if request.method == "PUT":
            return httpx.Response(201)
        return httpx.Response(201, json={"id": "urn:li:share:9"})

    recorder = RecordingTransport(responder)
    client = LinkedInClient(
        access_token="t",
        person_urn="urn:li:person:abc",
        transport=recorder.transport,
        publisher_settings=FAST,
    )

    result = await client.share_image("Team photo", "https://cdn.example.com/team.jpg")

    assert result.post_id == "urn:li:share:9"
    register, download, upload, post = recorder.requests
    assert register.url.params["action"] == "registerUpload"
    recipe = json.loads(register.content)["registerUploadRequest"]["recipes"]
    assert recipe == ["urn:li:digitalmediaRecipe:feedshare-image"]
    assert download.url.host == "cdn.example.com"
    assert upload.method == "PUT" and str(upload.url) == upload_url
    assert upload.content == image
    share = json.loads(post.content)["specificContent"]["com.linkedin.ugc.ShareContent"]
    assert share["shareMediaCategory"] == "IMAGE"
    assert share["media"][0]["media"] == "urn:li:digitalmediaAsset:A1"


@pytest.mark.anyio
async def test_linkedin_post_id_falls_back_to_restli_header_for_plain_body() -> None:
    recorder = RecordingTransport(
        lambda request: httpx.Response(
            201, text="created", headers={"x-restli-id": "urn:li:share:8"}
        )
    )
    client = LinkedInClient(
        access_token="t", person_urn="urn:li:person:abc", transport=recorder.transport
    )

    result = await client.share_text("Hello")

    assert result.post_id == "urn:li:share:8"


@pytest.mark.anyio
async def test_linkedin_plain_body_without_id_is_a_platform_error() -> None:
    recorder = RecordingTransport(lambda request: httpx.Response(201, text="created"))
    client = LinkedInClient(
        access_token="t", person_urn="urn:li:person:abc", transport=recorder.transport
    )

    with pytest.raises(SocialMediaException) as excinfo:
        await client.share_text("Hello")

    assert excinfo.value.platform == "linkedin"


@pytest.mark.anyio
async def test_linkedin_list_body_is_wrapped() -> None:
    recorder = RecordingTransport(
        lambda request: httpx.Response(
            201, json=[{"id": "x"}], headers={"x-restli-id": "urn:li:share:5"}
        )
    )
    client = LinkedInClient(
        access_token="t", person_urn="urn:li:person:abc", transport=recorder.transport
    )

    result = await client.share_text("Hello")

    assert result.post_id == "urn:li:share:5"
    assert result.raw == {"data": [{"id": "x"}]}


@pytest.mark.anyio
async def test_linkedin_refresh_grant_sends_client_credentials() -> None:
    recorder = RecordingTransport(
        lambda request: httpx.Response(
            200, json={"access_token": "li-new", "refresh_token": "li-r2", "expires_in": 5184000}
        )
    )
    client = LinkedInOAuthClient(
        client_id="li-id", client_secret="li-secret", transport=recorder.transport
    )

    token = await client.refresh_access_token("li-r1")

    assert (token.access_token, token.refresh_token, token.expires_in) == (
        "li-new",
        "li-r2",
        5184000,
    )
    request = recorder.requests[0]
    assert str(request.url) == "https://www.linkedin.com/oauth/v2/accessToken"
    assert _form(request) == {
        "grant_type": "refresh_token",
        "refresh_token": "li-r1",
        "client_id": "li-id",
        "client_secret": "li-secret",
    }


@pytest.mark.anyio
async def test_twitter_refresh_grant_uses_basic_auth() -> None:
    recorder = RecordingTransport(
        lambda request: httpx.Response(200, json={"access_token": "x-new", "expires_in": 7200})
    )
    client = TwitterOAuthClient(
        client_id="x-id", client_secret="x-secret", transport=recorder.transport
    )

    token = await client.refresh_access_token("x-r1")

    assert token.access_token == "x-new"
    request = recorder.requests[0]
    assert str(request.url) == "https://api.twitter.com/2/oauth2/token"
    credentials = base64.b64encode(b"x-id:x-secret").decode()
    assert request.headers["authorization"] == f"Basic {credentials}"
    assert _form(request) == {
        "refresh_token": "x-r1",
        "grant_type": "refresh_token",
        "client_id": "x-id",
    }


@pytest.mark.anyio
async def test_pinterest_analytics_and_search_queries() -> None:
    recorder = RecordingTransport(
        lambda request: httpx.Response(200, json={"items": [{"id": "p1"}], "all": {}})
    )
    client = PinterestClient(access_token="t", board_id="b1", transport=recorder.transport)

    await client.get_pin_analytics("p1", today=date(2024, 3, 31))
    pins = await client.search_pins("sourdough", page_size=500)

    assert pins == [{"id": "p1"}]
    analytics, search = recorder.requests
    assert analytics.url.path == "/v5/pins/p1/analytics"
    assert dict(analytics.url.params) == {
        "start_date": "2024-03-01",
        "end_date": "2024-03-31",
        "metric_types": "IMPRESSION,SAVE,CLICKTHROUGH",
    }
    assert search.url.path == "/v5/search/pins"
    assert dict(search.url.params) == {"query": "sourdough", "page_size": "250"}
