# src/infrastructure/proxy_client.py
import os
import httpx
import random
from typing import List, Optional


class ProxyManager:
    def __init__(self, proxies: Optional[List[str]] = None):
        self.proxies = proxies or []

    @classmethod
    def from_env(cls, var: str = "HTTP_PROXIES") -> "ProxyManager":
        raw = os.getenv(var, "")
        return cls([p.strip() for p in raw.split(",") if p.strip()])

    def pick(self) -> Optional[str]:
        if not self.proxies:
            return None
        return random.choice(self.proxies)


class ExternalAPIClient:
    """
    Thin httpx wrapper that routes each request through a randomly picked proxy.
    Non-2xx responses surface as httpx.HTTPStatusError.
    """

    def __init__(self, proxy_manager: Optional[ProxyManager] = None, timeout: int = 60, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.proxy_manager = proxy_manager
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        proxy = self.proxy_manager.pick() if self.proxy_manager else None
        if self.transport is not None:
            return httpx.AsyncClient(transport=self.transport, timeout=self.timeout)
        return httpx.AsyncClient(proxy=proxy, timeout=self.timeout)

    async def post(self, url, headers=None, json=None):
        async with self._client() as client:
            r = await client.post(url, headers=headers, json=json)
            r.raise_for_status()
            return r.json()
