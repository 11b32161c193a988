# leadstore/routes/lead.py

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from typing import List, Literal, Optional

from leadstore.schemas.base import OperationResult
from leadstore.schemas.lead import LeadCreate, LeadIdResponse, LeadRead, LeadSortField, LeadTracking
from leadstore.schemas.user import UserRead
from leadstore.services.leads import export_filename
from leadstore.routes.auth import get_current_user, ensure_success

router = APIRouter()

# ────────────── REGISTER (публичная форма) ──────────────
@router.post(
    "/",
    response_model=LeadIdResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Регистрация в акции",
    response_description="Возвращает ID созданного лида",
    responses={
        201: {"description": "Лид зарегистрирован"},
        409: {"description": "Email или телефон уже зарегистрированы"},
        422: {"description": "Неверные данные формы"},
        500: {"description": "Ошибка хранилища"},
    },
)
async def register_lead(lead: LeadCreate, request: Request):
    result = await request.app.state.leads.register_lead(lead)
    if result.reason == "storage":
        await request.app.state.log.log_error("lead", "Регистрация не выполнена", {"message": result.message})
    ensure_success(result)
    return {"id": result.id}

# ────────────── READ ALL ──────────────
@router.get(
    "/",
    response_model=List[LeadRead],
    summary="Список лидов: поиск и сортировка (по умолчанию новые первыми)",
    responses={
        401: {"description": "Некорректный пользователь или токен"},
        422: {"description": "Неизвестное поле сортировки или направление"},
        503: {"description": "Хранилище не прочиталось"},
    },
)
async def read_leads(
    request: Request,
    search: Optional[str] = Query(None, description="Подстрока: имя, email, телефон, учреждение, род занятий"),
    sort: Optional[LeadSortField] = Query(None, description="Поле сортировки"),
    direction: Literal["asc", "desc"] = Query("desc", description="Направление сортировки"),
    _: UserRead = Depends(get_current_user),
):
    result = await request.app.state.leads.get_all_leads(search=search, sort=sort, direction=direction)
    if result.failed:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Leads could not be read")
    await request.app.state.log.log_info("lead", "Список лидов загружен", {"count": len(result.items)})
    return result.items

# ────────────── EXPORT ──────────────
@router.get(
    "/export/csv",
    summary="Выгрузка лидов в CSV",
    responses={
        200: {"content": {"text/csv": {}}},
        401: {"description": "Некорректный пользователь или токен"},
        404: {"description": "Нет лидов для выгрузки"},
    },
)
async def export_csv(request: Request, _: UserRead = Depends(get_current_user)):
    content = await request.app.state.leads.export_leads_csv()
    if content is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No leads to export")
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{export_filename("csv")}"'},
    )

@router.get(
    "/export/db",
    summary="Выгрузка снимка базы",
    responses={
        200: {"content": {"application/x-sqlite3": {}}},
        401: {"description": "Некорректный пользователь или токен"},
    },
)
async def export_db(request: Request, _: UserRead = Depends(get_current_user)):
    data = await request.app.state.leads.export_database()
    return Response(
        content=data,
        media_type="application/x-sqlite3",
        headers={"Content-Disposition": f'attachment; filename="{export_filename("db")}"'},
    )

# ────────────── UPDATE ──────────────
@router.put(
    "/{id}",
    response_model=OperationResult,
    summary="Обновить данные лида",
    responses={
        401: {"description": "Некорректный пользователь или токен"},
        409: {"description": "Email или телефон заняты другим лидом"},
        422: {"description": "Неверные данные"},
        500: {"description": "Ошибка хранилища"},
    },
)
async def update_lead(id: int, lead: LeadCreate, request: Request, _: UserRead = Depends(get_current_user)):
    result = await request.app.state.leads.update_lead(id, lead)
    return ensure_success(result)

@router.put(
    "/{id}/tracking",
    response_model=OperationResult,
    summary="Обновить звонок/визит лида",
    responses={
        401: {"description": "Некорректный пользователь или токен"},
        500: {"description": "Ошибка хранилища"},
    },
)
async def update_tracking(id: int, tracking: LeadTracking, request: Request, _: UserRead = Depends(get_current_user)):
    result = await request.app.state.leads.update_lead_tracking(id, tracking)
    return ensure_success(result)

# ────────────── CLEAR ──────────────
@router.delete(
    "/",
    response_model=OperationResult,
    summary="Удалить все лиды",
    responses={
        401: {"description": "Некорректный пользователь или токен"},
        500: {"description": "Ошибка хранилища"},
    },
)
async def clear_leads(request: Request, _: UserRead = Depends(get_current_user)):
    result = await request.app.state.leads.clear_database()
    return ensure_success(result)
