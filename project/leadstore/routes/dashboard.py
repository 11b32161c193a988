# leadstore/routes/dashboard.py

from fastapi import APIRouter, Depends, HTTPException, Request, status

from leadstore.schemas.stats import DashboardStats
from leadstore.schemas.user import UserRead
from leadstore.services.stats import calculate_stats
from leadstore.routes.auth import get_current_user

router = APIRouter()

@router.get(
    "/stats",
    response_model=DashboardStats,
    summary="Сводка по лидам для дашборда",
    responses={
        401: {"description": "Некорректный пользователь или токен"},
        503: {"description": "Хранилище не прочиталось"},
    },
)
async def read_stats(request: Request, _: UserRead = Depends(get_current_user)):
    result = await request.app.state.leads.get_all_leads()
    if result.failed:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Leads could not be read")
    return calculate_stats(result.items)
