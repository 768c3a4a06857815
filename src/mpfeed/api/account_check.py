"""账号检测 API."""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException

from mpfeed.api.deps import get_services
from mpfeed.core.account_check import AccountHealthMonitor
from mpfeed.core.services import Services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/account-check", tags=["account-check"])


async def _run_check(monitor: AccountHealthMonitor) -> None:
    try:
        await monitor.run()
    except Exception:
        logger.exception("账号检测失败")


@router.post("/run")
async def run_account_check(
    background_tasks: BackgroundTasks,
    services: Services = Depends(get_services),
) -> dict:
    """在后台执行一轮账号检测."""
    if services.monitor.is_running:
        return {"started": False, "message": "已有账号检测在运行"}
    background_tasks.add_task(_run_check, services.monitor)
    return {"started": True, "message": "账号检测已在后台开始"}


@router.get("/status")
async def get_account_check_status(
    services: Services = Depends(get_services),
) -> dict:
    """账号检测是否正在进行."""
    return {"running": services.monitor.is_running}


@router.post("/check/{account_id}")
async def check_account(
    account_id: str,
    services: Services = Depends(get_services),
) -> dict:
    """检测单个账号，失效时的重新登录在后台进行."""
    try:
        valid = await services.monitor.manual_check(account_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return {"id": account_id, "valid": valid}


@router.post("/test-webhook")
async def test_webhook(
    services: Services = Depends(get_services),
) -> dict:
    """发送一条测试通知."""
    sent = await services.monitor.test_notification()
    return {"sent": sent}
