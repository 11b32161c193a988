# leadstore/schemas/user.py

from pydantic import BaseModel, Field

class UserCreate(BaseModel):
    """
    Схема для создания пользователя админ-панели.
    """
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1)

class PasswordUpdate(BaseModel):
    """
    Новый пароль. Старый пароль не проверяется.
    """
    password: str = Field(..., min_length=1)

class UserRead(BaseModel):
    """
    Пользователь без пароля (пароль наружу не отдаётся никогда).
    """
    id: int
    username: str
    created_at: str

    model_config = {
        "from_attributes": True
    }
