# src/infrastructure/publishing_client.py
import os
from typing import List, Optional

import httpx
import structlog

from src.infrastructure.proxy_client import ExternalAPIClient, ProxyManager

logger = structlog.get_logger(__name__)

POST_FOR_ME_API_URL = os.getenv("POST_FOR_ME_API_URL", "https://api.postforme.dev/v1")
POST_FOR_ME_API_KEY = os.getenv("POST_FOR_ME_API_KEY")


class PublishError(Exception):
    pass


class PublishingClient:
    """Delivers one post to one platform. Raises PublishError when the platform rejects it."""

    async def publish(self, platform: str, content: str, media_urls: List[str]) -> dict:
        raise NotImplementedError("Subclasses must implement publish method")


class PostForMeClient(PublishingClient):
    """
    Client for a hosted social posting gateway: one JSON request per platform,
    the gateway holds the platform credentials.
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        http: Optional[ExternalAPIClient] = None,
        timeout: int = 30,
    ):
        self.api_url = (api_url or POST_FOR_ME_API_URL).rstrip("/")
        self.api_key = api_key or POST_FOR_ME_API_KEY
        self.http = http or ExternalAPIClient(proxy_manager=ProxyManager.from_env(), timeout=timeout)

    async def publish(self, platform: str, content: str, media_urls: List[str]) -> dict:
        if not self.api_key:
            raise PublishError("POST_FOR_ME_API_KEY is not configured")

        payload = {
            "platform": platform,
            "content": content,
            "media": list(media_urls),
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            body = await self.http.post(f"{self.api_url}/posts", headers=headers, json=payload)
        except httpx.HTTPStatusError as e:
            raise PublishError(self._error_message(e.response)) from e
        except httpx.HTTPError as e:
            raise PublishError(f"{platform} request failed: {e}") from e

        if isinstance(body, dict) and body.get("success") is False:
            raise PublishError(body.get("error") or f"{platform} rejected the post")

        logger.info("platform_publish_ok", platform=platform, media=len(media_urls))
        return body

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            message = body.get("error") or body.get("message")
            if message:
                return str(message)
        return f"Posting gateway error ({response.status_code}): {response.text}"


_publishing_client: Optional[PublishingClient] = None


def get_publishing_client() -> PublishingClient:
    global _publishing_client
    if _publishing_client is None:
        _publishing_client = PostForMeClient()
    return _publishing_client
