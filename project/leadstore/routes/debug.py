# leadstore/routes/debug.py
# Отладочные операции над хранилищем. Подключается только при DEBUG_ROUTES=1

from fastapi import APIRouter, Depends, HTTPException, Request, status
from typing import List

from leadstore.schemas.user import UserRead
from leadstore.routes.auth import get_current_user

router = APIRouter()

@router.post("/reset", summary="Удалить снимок и пересоздать базу")
async def reset_storage(request: Request, _: UserRead = Depends(get_current_user)):
    await request.app.state.storage.reset()
    return {"detail": "Storage reset, database will be rebuilt on next access"}

@router.get("/users", response_model=List[UserRead], summary="Пользователи (без паролей)")
async def list_users(request: Request, _: UserRead = Depends(get_current_user)):
    result = await request.app.state.users.get_all_users()
    if result.failed:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Users could not be read")
    return result.items

@router.get("/check", summary="Версия схемы и количество строк")
async def check_storage(request: Request, _: UserRead = Depends(get_current_user)):
    return await request.app.state.storage.describe()
