# leadstore/schemas/lead.py

import re
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Literal, Optional

PHONE_PATTERN = r"^[0-9+\-\s()]+$"
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Поля, по которым сортируется список лидов
LeadSortField = Literal[
    "id", "full_name", "phone_number", "email", "institution", "occupation",
    "created_at", "call_datetime", "call_notes", "visit_datetime", "visit_notes",
]

# ────────────── Схема формы регистрации ──────────────
class LeadCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    full_name: str = Field(..., min_length=2, max_length=100)
    phone_number: str = Field(..., min_length=8, max_length=20, pattern=PHONE_PATTERN)
    email: str = Field(..., max_length=255)
    institution: str = Field(..., min_length=2, max_length=200)
    occupation: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        if not EMAIL_PATTERN.match(value):
            raise ValueError("Please enter a valid email address")
        return value

class LeadIdResponse(BaseModel):
    id: int

# ────────────── Трекинг звонка/визита ──────────────
class LeadTracking(BaseModel):
    """Полная замена всех четырёх полей: None или пустая строка очищает поле."""
    call_datetime: Optional[str] = None
    call_notes: Optional[str] = None
    visit_datetime: Optional[str] = None
    visit_notes: Optional[str] = None

# ────────────── Схема для RESPONSE ──────────────
class LeadRead(BaseModel):
    id: int
    full_name: str
    phone_number: str
    email: str
    institution: str
    occupation: str
    created_at: str
    call_datetime: Optional[str] = None
    call_notes: Optional[str] = None
    visit_datetime: Optional[str] = None
    visit_notes: Optional[str] = None

    model_config = {
        "from_attributes": True
    }
