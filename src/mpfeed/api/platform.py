"""上游平台代理 API - 公众号查询与扫码登录."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from mpfeed.api.deps import get_services
from mpfeed.core.services import Services
from mpfeed.utils.qr import generate_qrcode_base64

router = APIRouter(prefix="/api/platform", tags=["platform"])


class MpInfoRequest(BaseModel):
    """公众号查询请求."""

    wxs_link: str


@router.post("/mp-info")
async def get_mp_info(
    data: MpInfoRequest,
    services: Services = Depends(get_services),
) -> list[dict]:
    """通过公众号文章链接查询公众号资料."""
    infos = await services.engine.get_mp_info(data.wxs_link.strip())
    return [
        {
            "id": info.id,
            "name": info.name,
            "cover": info.cover,
            "intro": info.intro,
            "update_time": info.update_time,
        }
        for info in infos
    ]


@router.post("/login-url")
async def create_login_url(
    services: Services = Depends(get_services),
) -> dict:
    """创建扫码登录会话."""
    login = (await services.platform.create_login_url()).unwrap()
    return {
        "uuid": login.uuid,
        "scan_url": login.scan_url,
        "qr_code": generate_qrcode_base64(login.scan_url),
    }


@router.get("/login-result/{uuid}")
async def get_login_result(
    uuid: str,
    services: Services = Depends(get_services),
) -> dict:
    """查询扫码结果."""
    result = await services.platform.get_login_result(
        uuid,
        timeout=services.settings.login_timeout_seconds,
    )
    if result.error is not None and result.error.timed_out:
        return {"message": "等待扫码超时", "completed": False}

    login = result.unwrap()
    return {
        "message": login.message,
        "vid": login.vid,
        "token": login.token,
        "username": login.username,
        "completed": login.completed,
    }
