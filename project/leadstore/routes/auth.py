# leadstore/routes/auth.py

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from jwt import encode, decode, ExpiredSignatureError, InvalidTokenError
from datetime import datetime, timedelta, timezone
from typing import Optional, List

from leadstore.config import settings
from leadstore.schemas.base import OperationResult
from leadstore.schemas.user import UserCreate, UserRead, PasswordUpdate

router = APIRouter()

# ────────────── JWT ──────────────
SECRET_KEY = settings.AUTH_SECRET_KEY
ACCESS_TOKEN_EXPIRE_MINUTES = settings.AUTH_TOKEN_EXPIRE_MINUTES
ALGORITHM = "HS256"
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    """
    Создаёт JWT токен.
    Вход: dict (например {"sub": "admin"})
    Выход: JWT строка
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=15))
    to_encode.update({"exp": expire})
    return encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


async def get_current_user(request: Request, token: str = Depends(oauth2_scheme)) -> UserRead:
    """
    Проверяет JWT токен и возвращает пользователя админ-панели.

    **Статусы:**
    - 401 Unauthorized – токен истёк, неверный или пользователь удалён
    """
    log = request.app.state.log
    try:
        payload = decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        username: str = payload.get("sub")
        if username is None:
            await log.log_error("auth", "Токен не содержит username")
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    except ExpiredSignatureError:
        await log.log_warning("auth", "Токен истёк")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    except InvalidTokenError:
        await log.log_warning("auth", "Неверный токен")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token invalid")

    user = await request.app.state.users.get_user(username)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def ensure_success(result: OperationResult) -> OperationResult:
    """
    Переводит структурированный отказ репозитория в HTTP ошибку:
    нарушение инварианта → 409, ошибка хранилища → 500.
    """
    if result.success:
        return result
    if result.reason == "conflict":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=result.message)
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=result.message)


# ────────────── TOKEN ──────────────
@router.post(
    "/token",
    summary="Получение JWT токена (вход в админ-панель)",
    responses={
        200: {"description": "Токен выдан: access_token, token_type и данные пользователя"},
        401: {"description": "Неверный логин или пароль"},
        422: {"description": "Пустой username или password"},
    }
)
async def login_for_access_token(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends()
):
    """
    Проверяет логин и пароль и возвращает JWT токен.

    **Входные данные (form-data):**
    - `username`: str
    - `password`: str
    """
    users = request.app.state.users
    log = request.app.state.log

    if not await users.authenticate_user(form_data.username, form_data.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
            headers={"WWW-Authenticate": "Bearer"}
        )

    user = await users.get_user(form_data.username)
    access_token = create_access_token(
        data={"sub": user.username},
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    await log.log_info("auth", "Пользователь авторизован", {"username": user.username})

    return {
        "access_token": access_token,
        "token_type": "bearer",
        "user": user.model_dump(),
    }


@router.get("/me", response_model=UserRead, summary="Текущий пользователь")
async def read_me(current_user: UserRead = Depends(get_current_user)):
    return current_user


# ────────────── CRUD USERS ──────────────
@router.get(
    "/users",
    response_model=List[UserRead],
    summary="Список пользователей",
    responses={
        401: {"description": "Токен невалиден"},
        503: {"description": "Хранилище не прочиталось"},
    }
)
async def get_users(request: Request, _: UserRead = Depends(get_current_user)):
    result = await request.app.state.users.get_all_users()
    if result.failed:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Users could not be read")
    return result.items


@router.post(
    "/users",
    response_model=OperationResult,
    status_code=status.HTTP_201_CREATED,
    summary="Создание пользователя",
    responses={
        401: {"description": "Токен невалиден"},
        409: {"description": "Логин уже занят"},
        500: {"description": "Ошибка хранилища"},
    }
)
async def create_user(user: UserCreate, request: Request, _: UserRead = Depends(get_current_user)):
    result = await request.app.state.users.add_user(user.username, user.password)
    return ensure_success(result)


@router.delete(
    "/users/{user_id}",
    response_model=OperationResult,
    summary="Удаление пользователя",
    responses={
        401: {"description": "Токен невалиден"},
        409: {"description": "Нельзя удалить последнего администратора"},
        500: {"description": "Ошибка хранилища"},
    }
)
async def delete_user(user_id: int, request: Request, _: UserRead = Depends(get_current_user)):
    result = await request.app.state.users.delete_user(user_id)
    return ensure_success(result)


@router.put(
    "/users/{user_id}/password",
    response_model=OperationResult,
    summary="Смена пароля пользователя",
    responses={
        401: {"description": "Токен невалиден"},
        500: {"description": "Ошибка хранилища"},
    }
)
async def update_password(
    user_id: int,
    body: PasswordUpdate,
    request: Request,
    _: UserRead = Depends(get_current_user),
):
    result = await request.app.state.users.update_user_password(user_id, body.password)
    return ensure_success(result)
