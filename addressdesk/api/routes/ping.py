from fastapi import APIRouter, Depends

from addressdesk.dependencies.auth import CurrentUser, Role, role_required

router = APIRouter(prefix="/ping", tags=["health"])


@router.get("", summary="Public health check")
async def ping() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/secure",
    summary="Staff-only health check",
    dependencies=[Depends(role_required(Role.FRONT_DESK, Role.GIS))],
)
async def secure_ping(user: CurrentUser) -> dict[str, str]:
    return {"status": "ok", "user": user.username}
