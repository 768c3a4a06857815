"""账号失效 webhook 通知（钉钉机器人格式）."""

import logging
from datetime import datetime
from zoneinfo import ZoneInfo

import httpx

logger = logging.getLogger(__name__)

NOTIFY_TITLE = "微信读书账号失效通知"


class WebhookNotifier:
    """向配置的 webhook 推送账号失效通知.

    推送失败只记录日志，不会抛出异常。
    """

    def __init__(
        self,
        webhook_url: str,
        timezone: str = "Asia/Shanghai",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.webhook_url = webhook_url
        self._tz = ZoneInfo(timezone)
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self) -> None:
        """关闭客户端."""
        await self._client.aclose()

    def _now_text(self) -> str:
        return datetime.now(self._tz).strftime("%Y/%m/%d %H:%M:%S")

    def build_markdown_payload(
        self,
        account_id: str,
        account_name: str,
        qr_code: str,
        scan_url: str,
    ) -> dict:
        """构建 markdown 消息."""
        text = f"""## {NOTIFY_TITLE}

**账号信息：**
- 账号ID：`{account_id}`
- 账号名称：{account_name}
- 失效时间：{self._now_text()}

**请扫描以下二维码重新登录微信账号：**

![登录二维码]({qr_code})

**二维码链接：** {scan_url}

**或直接访问：** [点击这里打开二维码]({scan_url})

> 请尽快重新登录微信账号，以免影响服务使用。"""

        return {
            "msgtype": "markdown",
            "markdown": {"title": NOTIFY_TITLE, "text": text},
        }

    def build_text_payload(
        self,
        account_id: str,
        account_name: str,
        scan_url: str,
    ) -> dict:
        """构建纯文本消息（markdown 发送失败时使用）."""
        content = (
            f"{NOTIFY_TITLE}\n\n"
            f"账号ID: {account_id}\n"
            f"账号名称: {account_name}\n"
            f"失效时间: {self._now_text()}\n\n"
            f"请扫描二维码重新登录: {scan_url}"
        )
        return {"msgtype": "text", "text": {"content": content}}

    async def _post(self, payload: dict) -> None:
        response = await self._client.post(self.webhook_url, json=payload)
        response.raise_for_status()

    async def notify(
        self,
        account_id: str,
        account_name: str,
        qr_code: str,
        scan_url: str,
    ) -> bool:
        """推送账号失效通知，返回是否推送成功."""
        if not self.webhook_url:
            logger.warning(f"未配置 webhook，跳过账号 {account_id} 的失效通知")
            return False

        try:
            await self._post(
                self.build_markdown_payload(account_id, account_name, qr_code, scan_url)
            )
            logger.info(f"已发送 webhook 通知: 账号 {account_id} ({account_name})")
            return True
        except httpx.HTTPError as e:
            logger.error(f"发送 webhook 通知失败: {e}")

        try:
            payload = self.build_text_payload(account_id, account_name, scan_url)
            await self._post(payload)
            logger.info(f"已发送文本通知: 账号 {account_id} ({account_name})")
            return True
        except httpx.HTTPError as e:
            logger.error(f"发送文本通知也失败: {e}")
            return False
