# leadstore/services/leads.py

import csv
import datetime
import io
from typing import get_args
from sqlalchemy import select, update, delete, func, or_
from sqlalchemy.exc import SQLAlchemyError, IntegrityError

from leadstore.models.lead import Lead as LeadModel
from leadstore.schemas.base import OperationResult, DuplicateCheck, RegistrationResult, ReadResult
from leadstore.schemas.lead import LeadCreate, LeadRead, LeadSortField, LeadTracking
from leadstore.utils.database import utc_now_iso

CSV_HEADERS = [
    "ID", "Full Name", "Phone Number", "Email", "Institution", "Occupation",
    "Created At", "Call Date/Time", "Call Notes", "Visit Date/Time", "Visit Notes",
]

DUPLICATE_MESSAGES = {
    "email": "This email is already registered",
    "phone": "This phone number is already registered",
}

SEARCH_FIELDS = ("full_name", "email", "phone_number", "institution", "occupation")

SORT_FIELDS = get_args(LeadSortField)


def export_filename(extension: str, today: datetime.date | None = None) -> str:
    """Имя файла выгрузки: leads-2025-01-31.csv"""
    today = today or datetime.datetime.now(datetime.timezone.utc).date()
    return f"leads-{today.isoformat()}.{extension}"


class LeadRepository:
    """
    Операции над таблицей leads.
    Ошибки хранилища не выбрасываются: чтение возвращает ReadResult с error,
    запись возвращает OperationResult(success=False).
    """

    def __init__(self, storage, log):
        self.storage = storage
        self.log = log

    # ==========================================================
    # ДУБЛИКАТЫ
    # ==========================================================
    @staticmethod
    def _count(session, *criteria) -> int:
        return session.scalar(select(func.count()).select_from(LeadModel).where(*criteria)) or 0

    def _find_duplicate(self, session, email: str, phone_number: str) -> DuplicateCheck:
        # email проверяется первым, телефон только если email свободен
        if self._count(session, LeadModel.email == email):
            return DuplicateCheck(is_duplicate=True, field="email")
        if self._count(session, LeadModel.phone_number == phone_number):
            return DuplicateCheck(is_duplicate=True, field="phone")
        return DuplicateCheck()

    async def check_duplicate(self, email: str, phone_number: str) -> DuplicateCheck:
        """
        Рекомендательная проверка: результат верен на момент проверки.
        Для атомарной проверки со вставкой использовать register_lead().
        """
        Session = await self.storage.get_handle()
        try:
            with Session() as session:
                return self._find_duplicate(session, email, phone_number)
        except SQLAlchemyError as e:
            await self.log.log_error("lead", f"Ошибка проверки дубликата: {e}")
            return DuplicateCheck(error=str(e))

    # ==========================================================
    # ВСТАВКА
    # ==========================================================
    @staticmethod
    def _add(session, lead: LeadCreate, created_at: str | None) -> int:
        db_lead = LeadModel(**lead.model_dump(), created_at=created_at or utc_now_iso())
        session.add(db_lead)
        session.commit()
        return db_lead.id

    async def insert_lead(self, lead: LeadCreate, created_at: str | None = None) -> OperationResult:
        """
        Вставка без проверки дубликата (это задача вызывающего кода).
        Уникальные индексы превращают повтор email/телефона в success=False.
        """
        Session = await self.storage.get_handle()
        async with self.storage.write_lock:
            try:
                with Session() as session:
                    lead_id = self._add(session, lead, created_at)
            except IntegrityError:
                await self.log.log_warning("lead", "Вставка отклонена: email или телефон уже есть", {"email": lead.email})
                return OperationResult(success=False, message="Lead with this email or phone number already exists", reason="conflict")
            except SQLAlchemyError as e:
                await self.log.log_error("lead", f"Ошибка при вставке лида: {e}")
                return OperationResult(success=False, message="Error inserting lead", reason="storage")
            await self.storage.persist()

        await self.log.log_info("lead", "Лид создан", {"id": lead_id})
        return OperationResult(success=True, message="Lead inserted successfully", id=lead_id)

    async def register_lead(self, lead: LeadCreate) -> RegistrationResult:
        """Регистрация с формы: проверка дубликата и вставка под одним write_lock."""
        Session = await self.storage.get_handle()
        async with self.storage.write_lock:
            try:
                with Session() as session:
                    duplicate = self._find_duplicate(session, lead.email, lead.phone_number)
                    lead_id = None if duplicate.is_duplicate else self._add(session, lead, None)
            except IntegrityError:
                await self.log.log_warning("lead", "Регистрация отклонена уникальным индексом", {"email": lead.email})
                return RegistrationResult(success=False, message="This email or phone number is already registered", reason="conflict")
            except SQLAlchemyError as e:
                await self.log.log_error("lead", f"Ошибка при регистрации лида: {e}")
                return RegistrationResult(success=False, message="Error registering lead", reason="storage")

            if duplicate.is_duplicate:
                await self.log.log_warning("lead", "Повторная регистрация", {"field": duplicate.field})
                return RegistrationResult(
                    success=False,
                    message=DUPLICATE_MESSAGES[duplicate.field],
                    duplicate_field=duplicate.field,
                    reason="conflict",
                )
            await self.storage.persist()

        await self.log.log_info("lead", "Лид зарегистрирован", {"id": lead_id})
        return RegistrationResult(success=True, message="Registration successful", id=lead_id)

    # ==========================================================
    # ЧТЕНИЕ
    # ==========================================================
    @staticmethod
    def _ordering(sort: str | None, direction: str) -> list:
        if sort is None:
            return [LeadModel.created_at.desc(), LeadModel.id.desc()]
        if sort not in SORT_FIELDS:
            raise ValueError(f"unknown sort field: {sort}")
        if direction not in ("asc", "desc"):
            raise ValueError(f"unknown sort direction: {direction}")

        column = getattr(LeadModel, sort)
        # id сравнивается как число, текстовые поля без учёта регистра
        key = column if sort == "id" else func.lower(column)
        if direction == "asc":
            return [key.asc(), LeadModel.id.asc()]
        return [key.desc(), LeadModel.id.desc()]

    async def get_all_leads(
        self,
        search: str | None = None,
        sort: str | None = None,
        direction: str = "desc",
    ) -> ReadResult[LeadRead]:
        """
        Лиды, по умолчанию новые первыми.
        search: подстрока без учёта регистра по имени, email, телефону, учреждению и роду занятий.
        sort/direction: любое поле лида, asc или desc.
        """
        statement = select(LeadModel).order_by(*self._ordering(sort, direction))
        term = (search or "").strip()
        if term:
            statement = statement.where(
                or_(*(getattr(LeadModel, f).icontains(term, autoescape=True) for f in SEARCH_FIELDS))
            )

        Session = await self.storage.get_handle()
        try:
            with Session() as session:
                rows = session.execute(statement).scalars().all()
                items = [LeadRead.model_validate(row) for row in rows]
        except SQLAlchemyError as e:
            await self.log.log_error("lead", f"Ошибка при получении лидов: {e}")
            return ReadResult[LeadRead](error=str(e))
        return ReadResult[LeadRead](items=items)

    # ==========================================================
    # ОБНОВЛЕНИЕ И ОЧИСТКА
    # ==========================================================
    async def _write(self, statement, done: str, failed: str, data: dict) -> OperationResult:
        """Выполняет мутацию под write_lock и сохраняет снимок. Ноль затронутых строк не считается ошибкой."""
        Session = await self.storage.get_handle()
        async with self.storage.write_lock:
            try:
                with Session() as session:
                    session.execute(statement)
                    session.commit()
            except IntegrityError:
                await self.log.log_warning("lead", f"{failed}: нарушена уникальность", data)
                return OperationResult(success=False, message="Another lead already uses this email or phone number", reason="conflict")
            except SQLAlchemyError as e:
                await self.log.log_error("lead", f"{failed}: {e}", data)
                return OperationResult(success=False, message=failed, reason="storage")
            await self.storage.persist()

        await self.log.log_info("lead", done, data)
        return OperationResult(success=True, message=done)

    async def update_lead(self, lead_id: int, lead: LeadCreate) -> OperationResult:
        """Полная перезапись пяти редактируемых полей."""
        return await self._write(
            update(LeadModel).where(LeadModel.id == lead_id).values(**lead.model_dump()),
            done="Lead updated successfully",
            failed="Error updating lead",
            data={"id": lead_id},
        )

    async def update_lead_tracking(self, lead_id: int, tracking: LeadTracking) -> OperationResult:
        """Заменяет все четыре поля трекинга одним запросом; пустые значения очищают поле."""
        values = {key: value or None for key, value in tracking.model_dump().items()}
        return await self._write(
            update(LeadModel).where(LeadModel.id == lead_id).values(**values),
            done="Lead tracking updated successfully",
            failed="Error updating lead tracking",
            data={"id": lead_id},
        )

    async def clear_database(self) -> OperationResult:
        """Удаляет все лиды. Необратимо."""
        return await self._write(
            delete(LeadModel),
            done="All leads deleted",
            failed="Error clearing leads",
            data={},
        )

    # ==========================================================
    # ЭКСПОРТ
    # ==========================================================
    async def export_database(self) -> bytes:
        """Бинарный снимок всей базы (файл .db)."""
        data = await self.storage.snapshot()
        await self.log.log_info("lead", "Экспорт базы", {"size": len(data)})
        return data

    async def export_leads_csv(self) -> str | None:
        """
        CSV всех лидов. Каждое значение в двойных кавычках, заголовок без кавычек.
        None, если лидов нет.
        """
        result = await self.get_all_leads()
        if not result.items:
            await self.log.log_warning("lead", "Нет лидов для экспорта")
            return None

        buffer = io.StringIO()
        csv.writer(buffer, lineterminator="\n").writerow(CSV_HEADERS)
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        for lead in result.items:
            writer.writerow([
                lead.id,
                lead.full_name,
                lead.phone_number,
                lead.email,
                lead.institution,
                lead.occupation,
                lead.created_at,
                lead.call_datetime or "",
                lead.call_notes or "",
                lead.visit_datetime or "",
                lead.visit_notes or "",
            ])

        await self.log.log_info("lead", "Экспорт CSV", {"count": len(result.items)})
        return buffer.getvalue()
