"""接口依赖."""

from fastapi import Request

from mpfeed.core.services import Services


def get_services(request: Request) -> Services:
    """获取应用启动时创建的核心服务."""
    return request.app.state.services
