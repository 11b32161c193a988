# leadstore/utils/database.py

import asyncio
import datetime
import sqlite3
from sqlalchemy import create_engine, inspect, select, func, text
from sqlalchemy.exc import SQLAlchemyError, OperationalError, IntegrityError
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from leadstore.config import settings
from leadstore.utils.security import hash_password, is_password_hash

# ────────────── Base для моделей ──────────────
Base = declarative_base()  # базовый класс для всех моделей SQLAlchemy

# ────────────── Константы схемы ──────────────
SCHEMA_VERSION = 2          # PRAGMA user_version: 1 = колонки трекинга, 2 = уникальные индексы и хэши паролей
ADMIN_USERNAME = "admin"
TRACKING_COLUMNS = ("call_datetime", "call_notes", "visit_datetime", "visit_notes")
LEAD_UNIQUE_INDEXES = {
    "ux_leads_email": "email",
    "ux_leads_phone_number": "phone_number",
}


class StorageInitError(RuntimeError):
    """База не может быть построена (повреждённый снимок, ошибка миграции). Фатально, без отката к пустой базе."""


class SchemaMigrationError(StorageInitError):
    """После миграции в таблице leads всё ещё нет нужных колонок."""


def utc_now_iso() -> str:
    """Текущее время в ISO-8601 UTC с миллисекундами: 2025-01-31T09:15:02.123Z"""
    now = datetime.datetime.now(datetime.timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class Storage:
    """
    Встроенная SQLite база в памяти процесса и её долговечность.

    - база живёт в одном in-memory соединении sqlite3 (StaticPool)
    - единица долговечности: снимок, полный бинарный образ базы (serialize/deserialize),
      хранится в key-value хранилище под фиксированным ключом
    - после каждой мутации репозитории вызывают persist()
    - write_lock сериализует все записи (проверка дубликата + вставка выполняются атомарно)
    """

    def __init__(self, backing, log, key: str | None = None, admin_password: str | None = None):
        self.backing = backing
        self.log = log
        self.key = key or settings.STORAGE_KEY
        self.admin_password = admin_password or settings.DEFAULT_ADMIN_PASSWORD

        self.engine = None
        self.session_factory = None
        self._raw = None
        self._init_lock = asyncio.Lock()
        self.write_lock = asyncio.Lock()

    # ==========================================================
    # ДОСТУП К БАЗЕ
    # ==========================================================
    async def get_handle(self) -> sessionmaker:
        """
        Возвращает фабрику сессий, при первом вызове строит базу.
        Параллельные первые вызовы ждут одну и ту же инициализацию.
        """
        if self.session_factory is not None:
            return self.session_factory

        async with self._init_lock:
            if self.session_factory is None:
                await self._open()
        return self.session_factory

    async def _open(self):
        try:
            snapshot = await self.backing.get(self.key)
        except OSError as e:
            await self.log.log_error("storage", f"Снимок не прочитан: {e}", {"key": self.key})
            raise StorageInitError(f"Не удалось прочитать снимок {self.key}: {e}") from e

        await self.log.log_info("storage", "Инициализация базы", {
            "key": self.key,
            "snapshot_size": len(snapshot) if snapshot is not None else None,
        })

        try:
            raw = self._connect(snapshot)
            self._raw = raw
            self.engine = create_engine(
                "sqlite://",
                creator=lambda: raw,
                poolclass=StaticPool,
                echo=settings.is_on(settings.LOG_PRINT_DB),
            )
            factory = sessionmaker(bind=self.engine, expire_on_commit=False)
            await self._build_schema(factory)
        except StorageInitError as e:
            self._discard()
            await self.log.log_error("storage", f"Ошибка миграции базы: {e}")
            raise
        except (SQLAlchemyError, sqlite3.Error) as e:
            self._discard()
            await self.log.log_error("storage", f"Ошибка инициализации базы: {e}")
            raise StorageInitError(f"Не удалось инициализировать базу: {e}") from e

        self.session_factory = factory
        await self.log.log_info("storage", "База готова", {"schema_version": self.schema_version()})

    @staticmethod
    def _connect(snapshot: bytes | None) -> sqlite3.Connection:
        raw = sqlite3.connect(":memory:", check_same_thread=False)
        if snapshot is not None:
            try:
                raw.deserialize(snapshot)
            except sqlite3.Error:
                raw.close()
                raise
        return raw

    def _discard(self):
        if self.engine is not None:
            self.engine.dispose()
        if self._raw is not None:
            self._raw.close()
        self.engine = None
        self._raw = None

    # ==========================================================
    # СХЕМА И МИГРАЦИИ
    # ==========================================================
    async def _build_schema(self, factory: sessionmaker):
        from leadstore.models.lead import Lead
        from leadstore.models.user import User

        Lead.__table__.create(self.engine, checkfirst=True)

        if await self._migrate_tracking_columns():
            await self.persist()

        User.__table__.create(self.engine, checkfirst=True)

        if self.schema_version() < SCHEMA_VERSION:
            await self._upgrade_schema(factory, User)
            await self.persist()

        await self._ensure_admin(factory, User)

    async def _migrate_tracking_columns(self) -> bool:
        """
        Снимки старой версии не содержат колонок трекинга.
        Каждая колонка добавляется отдельно, ошибка одной колонки не прерывает остальные,
        затем форма схемы проверяется явно.
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(text(f"SELECT {', '.join(TRACKING_COLUMNS)} FROM leads LIMIT 1"))
            return False
        except OperationalError:
            await self.log.log_info("storage", "Миграция базы: добавление колонок трекинга")

        for column in TRACKING_COLUMNS:
            try:
                with self.engine.begin() as conn:
                    conn.execute(text(f"ALTER TABLE leads ADD COLUMN {column} TEXT"))
            except OperationalError as e:
                await self.log.log_warning("storage", f"Колонка {column} не добавлена", {"error": str(e.orig)})

        existing = {c["name"] for c in inspect(self.engine).get_columns("leads")}
        missing = [c for c in TRACKING_COLUMNS if c not in existing]
        if missing:
            raise SchemaMigrationError(f"в таблице leads нет колонок: {', '.join(missing)}")

        await self.log.log_info("storage", "Миграция колонок трекинга завершена")
        return True

    async def _upgrade_schema(self, factory: sessionmaker, User):
        # Уникальность email и телефона на уровне базы
        for name, column in LEAD_UNIQUE_INDEXES.items():
            try:
                with self.engine.begin() as conn:
                    conn.execute(text(f"CREATE UNIQUE INDEX IF NOT EXISTS {name} ON leads ({column})"))
            except IntegrityError:
                await self.log.log_warning(
                    "storage",
                    f"Индекс {name} не создан: в базе уже есть повторяющиеся значения {column}",
                )

        # Открытые пароли из старых снимков → хэши
        with factory() as session:
            upgraded = 0
            for user in session.execute(select(User)).scalars().all():
                if not is_password_hash(user.password):
                    user.password = hash_password(user.password)
                    upgraded += 1
            session.commit()

        with self.engine.begin() as conn:
            conn.exec_driver_sql(f"PRAGMA user_version = {SCHEMA_VERSION}")

        await self.log.log_info("storage", "Схема обновлена", {
            "schema_version": SCHEMA_VERSION,
            "passwords_hashed": upgraded,
        })

    async def _ensure_admin(self, factory: sessionmaker, User):
        with factory() as session:
            count = session.scalar(
                select(func.count()).select_from(User).where(User.username == ADMIN_USERNAME)
            )
            if count:
                return
            session.add(User(
                username=ADMIN_USERNAME,
                password=hash_password(self.admin_password),
                created_at=utc_now_iso(),
            ))
            session.commit()

        await self.log.log_info("storage", "Создан администратор по умолчанию", {"username": ADMIN_USERNAME})
        await self.persist()

    def schema_version(self) -> int:
        with self.engine.connect() as conn:
            return conn.exec_driver_sql("PRAGMA user_version").scalar() or 0

    async def describe(self) -> dict:
        """Версия схемы и количество строк в таблицах (для отладки)."""
        await self.get_handle()
        with self.engine.connect() as conn:
            counts = {
                table: conn.execute(text(f"SELECT COUNT(*) FROM {table}")).scalar()
                for table in ("leads", "users")
            }
        version = self.schema_version()
        return {"key": self.key, "schema_version": version, **counts}

    # ==========================================================
    # ДОЛГОВЕЧНОСТЬ
    # ==========================================================
    async def persist(self) -> bool:
        """Сохраняет снимок базы в хранилище. Ошибки логируются, не выбрасываются."""
        if self._raw is None:
            return False
        try:
            data = self._raw.serialize()
            await self.backing.set(self.key, data)
        except (sqlite3.Error, OSError) as e:
            await self.log.log_error("storage", f"Ошибка сохранения снимка: {e}", {"key": self.key})
            return False
        return True

    async def snapshot(self) -> bytes:
        """Текущий бинарный образ базы."""
        await self.get_handle()
        return self._raw.serialize()

    async def reset(self):
        """
        Удаляет сохранённый снимок и забывает текущую базу (без её закрытия).
        Следующий get_handle() строит базу заново, включая администратора по умолчанию.
        """
        await self.backing.delete(self.key)
        self.session_factory = None
        self.engine = None
        self._raw = None
        await self.log.log_warning("storage", "Снимок удалён, база будет создана заново", {"key": self.key})

    async def close(self):
        self._discard()
        self.session_factory = None
