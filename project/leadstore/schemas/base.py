# leadstore/schemas/base.py

from pydantic import BaseModel, Field
from typing import Generic, List, Literal, Optional, TypeVar

T = TypeVar("T")

class OperationResult(BaseModel):
    """Структурированный результат записи: ошибки хранилища и нарушения инвариантов не выбрасываются."""
    success: bool
    message: str
    id: Optional[int] = None
    reason: Optional[Literal["conflict", "storage"]] = None   # conflict: нарушен инвариант данных, storage: ошибка хранилища

class DuplicateCheck(BaseModel):
    is_duplicate: bool = False
    field: Optional[Literal["email", "phone"]] = None
    error: Optional[str] = None     # проверка не выполнена из-за ошибки хранилища

class RegistrationResult(OperationResult):
    duplicate_field: Optional[Literal["email", "phone"]] = None

class ReadResult(BaseModel, Generic[T]):
    """
    Результат чтения. Пустой items с error=None: данных нет,
    с заполненным error: хранилище не прочиталось.
    """
    items: List[T] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None
