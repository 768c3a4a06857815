"""上游平台 API 客户端."""

import logging
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from mpfeed.core.errors import ErrorKind, PlatformError, PlatformResult, classify_error
from mpfeed.models.account import Account

logger = logging.getLogger(__name__)


class _PlatformModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ArticleSummary(_PlatformModel):
    """文章列表中的单篇文章."""

    id: str
    title: str
    pic_url: str = Field(default="", alias="picUrl")
    publish_time: int = Field(alias="publishTime")


class MpInfo(_PlatformModel):
    """公众号资料."""

    id: str
    name: str
    cover: str = ""
    intro: str = ""
    update_time: int = Field(default=0, alias="updateTime")


class LoginSession(_PlatformModel):
    """扫码登录会话."""

    uuid: str
    scan_url: str = Field(alias="scanUrl")


class LoginResult(_PlatformModel):
    """扫码登录结果，vid 与 token 同时存在时表示登录完成."""

    message: str = ""
    vid: int | str | None = None
    token: str | None = None
    username: str | None = None

    @property
    def completed(self) -> bool:
        return self.vid is not None and bool(self.token)


_articles_adapter = TypeAdapter(list[ArticleSummary])
_mp_info_adapter = TypeAdapter(list[MpInfo])


@dataclass
class PlatformConfig:
    """上游平台连接配置."""

    base_url: str
    timeout: float = 15.0


class PlatformClient:
    """上游平台 API 客户端.

    所有方法返回 PlatformResult，不抛出上游错误。
    """

    def __init__(
        self,
        config: PlatformConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout,
            transport=transport,
        )

    async def close(self) -> None:
        """关闭客户端."""
        await self._client.aclose()

    @staticmethod
    def _auth_headers(account: Account) -> dict[str, str]:
        """账号认证请求头."""
        return {
            "xid": account.id,
            "Authorization": f"Bearer {account.token}",
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> PlatformResult[Any]:
        """发送请求并对失败进行分类."""
        if timeout is not None:
            kwargs["timeout"] = timeout

        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            return PlatformResult.failure(
                PlatformError(
                    ErrorKind.OTHER,
                    f"请求超时: {path}",
                    timed_out=True,
                    data=str(e),
                )
            )
        except httpx.HTTPError as e:
            return PlatformResult.failure(
                PlatformError(ErrorKind.OTHER, f"请求失败: {e}")
            )

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.is_error:
            message = ""
            if isinstance(data, dict):
                message = str(data.get("message") or "")
            message = message or f"Request failed: {response.status_code}"
            kind = classify_error(response.status_code, message)
            logger.debug(
                f"上游请求失败: {method} {path} -> {response.status_code} {message}"
            )
            return PlatformResult.failure(
                PlatformError(
                    kind,
                    message,
                    status_code=response.status_code,
                    data=data,
                )
            )

        return PlatformResult.success(data)

    @staticmethod
    def _parse(
        result: PlatformResult[Any], adapter: TypeAdapter[Any]
    ) -> PlatformResult[Any]:
        if not result.ok:
            return result
        try:
            return PlatformResult.success(adapter.validate_python(result.value))
        except ValidationError as e:
            return PlatformResult.failure(
                PlatformError(
                    ErrorKind.OTHER, f"上游返回格式错误: {e}", data=result.value
                )
            )

    async def fetch_articles_page(
        self,
        account: Account,
        mp_id: str,
        page: int = 1,
    ) -> PlatformResult[list[ArticleSummary]]:
        """获取公众号文章列表的一页."""
        result = await self._request(
            "GET",
            f"/api/v2/platform/mps/{mp_id}/articles",
            params={"page": page},
            headers=self._auth_headers(account),
        )
        return self._parse(result, _articles_adapter)

    async def fetch_mp_info(
        self,
        account: Account,
        url: str,
    ) -> PlatformResult[list[MpInfo]]:
        """通过文章链接查询公众号资料."""
        result = await self._request(
            "POST",
            "/api/v2/platform/wxs2mp",
            json={"url": url.strip()},
            headers=self._auth_headers(account),
        )
        return self._parse(result, _mp_info_adapter)

    async def create_login_url(self) -> PlatformResult[LoginSession]:
        """创建扫码登录会话."""
        result = await self._request("GET", "/api/v2/login/platform")
        return self._parse(result, TypeAdapter(LoginSession))

    async def get_login_result(
        self,
        uuid: str,
        timeout: float | None = None,
    ) -> PlatformResult[LoginResult]:
        """查询扫码结果，上游会挂起请求直到扫码或超时."""
        result = await self._request(
            "GET",
            f"/api/v2/login/platform/{uuid}",
            timeout=timeout,
        )
        return self._parse(result, TypeAdapter(LoginResult))
