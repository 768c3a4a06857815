"""上游账号 API."""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from mpfeed.api.deps import get_services
from mpfeed.api.schemas import account_to_dict
from mpfeed.core.services import Services
from mpfeed.models.account import AccountStatus

router = APIRouter(prefix="/api/accounts", tags=["accounts"])


class AccountCreate(BaseModel):
    """新增账号请求."""

    id: str = Field(min_length=1, max_length=32)
    token: str = Field(min_length=1)
    name: str = Field(min_length=1)
    status: int = AccountStatus.ENABLE


class AccountUpdate(BaseModel):
    """编辑账号请求."""

    token: str | None = Field(default=None, min_length=1)
    name: str | None = Field(default=None, min_length=1)
    status: int | None = None


@router.get("")
async def list_accounts(
    services: Services = Depends(get_services),
) -> dict:
    """获取账号列表及今日被屏蔽的账号."""
    accounts = await services.store.list_accounts()
    return {
        "blocks": services.selector.blocked_ids(),
        "items": [account_to_dict(a) for a in accounts],
    }


@router.get("/{account_id}")
async def get_account(
    account_id: str,
    services: Services = Depends(get_services),
) -> dict:
    """获取账号详情."""
    account = await services.store.get_account(account_id)
    if not account:
        raise HTTPException(status_code=404, detail="账号不存在")
    return account_to_dict(account)


@router.post("")
async def add_account(
    data: AccountCreate,
    services: Services = Depends(get_services),
) -> dict:
    """新增账号，已存在时覆盖."""
    account = await services.store.upsert_account(
        data.id, data.token, data.name, data.status
    )
    services.selector.release(data.id)
    return account_to_dict(account)


@router.patch("/{account_id}")
async def edit_account(
    account_id: str,
    data: AccountUpdate,
    services: Services = Depends(get_services),
) -> dict:
    """编辑账号."""
    account = await services.store.update_account(
        account_id, **data.model_dump(exclude_none=True)
    )
    if not account:
        raise HTTPException(status_code=404, detail="账号不存在")
    services.selector.release(account_id)
    return account_to_dict(account)


@router.delete("/{account_id}")
async def delete_account(
    account_id: str,
    services: Services = Depends(get_services),
) -> dict:
    """删除账号."""
    deleted = await services.store.delete_account(account_id)
    services.selector.release(account_id)
    return {"id": account_id, "deleted": deleted}
