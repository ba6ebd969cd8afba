"""
API 客户端基类

管理 aiohttp session，并把 HTTP 状态码映射为统一的异常。
"""

from typing import Any, Dict, Optional

import aiohttp
from loguru import logger

from modpacker.exceptions import (
    APIError,
    APINotFoundError,
    APIRateLimitError,
    APIServerError,
)

DEFAULT_USER_AGENT = "modpacker/0.1.0"


class BaseClient:
    """平台 API 客户端基类"""

    registry = "unknown"

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        headers: Optional[Dict[str, str]] = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self._session = session
        self._owned_session = session is None
        self.headers = {"User-Agent": user_agent}
        self.headers.update(headers or {})

    @property
    def session(self) -> aiohttp.ClientSession:
        """获取或创建 aiohttp session"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers=self.headers)
            self._owned_session = True
        return self._session

    def _check_rate_limit(self, response: aiohttp.ClientResponse) -> None:
        """检查速率限制，子类按平台的响应头实现"""
        if response.status == 429:
            raise APIRateLimitError(
                self.registry,
                response.headers.get("Retry-After"),
                response=response,
            )

    def _unwrap(self, data: Any) -> Any:
        """从响应体中取出有效数据"""
        return data

    async def _request(
        self,
        method: str,
        url: str,
        params: Optional[dict] = None,
        json: Optional[Any] = None,
    ) -> Any:
        """
        发送 API 请求

        Raises:
            APINotFoundError: 404
            APIRateLimitError: 超出速率限制
            APIServerError: 5xx
            APIError: 其他错误状态或网络错误
        """
        logger.debug(f"[请求] {method} {url}")
        try:
            async with self.session.request(
                method, url, params=params, json=json, headers=self.headers
            ) as response:
                self._check_rate_limit(response)
                if response.status == 404:
                    raise APINotFoundError(
                        f"{self.registry} 上不存在该资源: {url}", response=response
                    )
                if response.status >= 500:
                    raise APIServerError(
                        f"{self.registry} 服务器错误 (状态码: {response.status})",
                        response=response,
                    )
                if response.status >= 400:
                    raise APIError(
                        f"API 请求失败 (状态码: {response.status})",
                        response=response,
                    )
                return self._unwrap(await response.json(content_type=None))
        except aiohttp.ClientError as e:
            raise APIError(f"网络错误: {e}", context={"url": url}) from e

    async def get(self, url: str, params: Optional[dict] = None) -> Any:
        return await self._request("GET", url, params=params)

    async def post(self, url: str, body: Any) -> Any:
        return await self._request("POST", url, json=body)

    async def close(self):
        """关闭客户端"""
        if self._owned_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        """异步上下文管理器入口"""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """异步上下文管理器出口"""
        await self.close()
