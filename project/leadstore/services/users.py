# leadstore/services/users.py

from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import SQLAlchemyError, IntegrityError

from leadstore.models.user import User as UserModel
from leadstore.schemas.base import OperationResult, ReadResult
from leadstore.schemas.user import UserRead
from leadstore.utils.database import ADMIN_USERNAME, utc_now_iso
from leadstore.utils.security import hash_password, verify_password


class UserRepository:
    """Пользователи админ-панели. Пароли хранятся только в виде хэшей и наружу не отдаются."""

    def __init__(self, storage, log):
        self.storage = storage
        self.log = log

    async def authenticate_user(self, username: str, password: str) -> bool:
        """Проверка логина и пароля. Любая ошибка хранилища означает отказ."""
        Session = await self.storage.get_handle()
        try:
            with Session() as session:
                stored = session.scalar(select(UserModel.password).where(UserModel.username == username))
        except SQLAlchemyError as e:
            await self.log.log_error("auth", f"Ошибка при проверке пользователя: {e}")
            return False

        ok = stored is not None and verify_password(password, stored)
        if not ok:
            await self.log.log_warning("auth", "Неудачная попытка входа", {"username": username})
        return ok

    async def get_user(self, username: str) -> UserRead | None:
        Session = await self.storage.get_handle()
        try:
            with Session() as session:
                user = session.execute(
                    select(UserModel).where(UserModel.username == username)
                ).scalar_one_or_none()
                return UserRead.model_validate(user) if user else None
        except SQLAlchemyError as e:
            await self.log.log_error("auth", f"Ошибка при чтении пользователя: {e}", {"username": username})
            return None

    async def get_all_users(self) -> ReadResult[UserRead]:
        Session = await self.storage.get_handle()
        try:
            with Session() as session:
                rows = session.execute(
                    select(UserModel).order_by(UserModel.created_at.desc(), UserModel.id.desc())
                ).scalars().all()
                items = [UserRead.model_validate(row) for row in rows]
        except SQLAlchemyError as e:
            await self.log.log_error("auth", f"Ошибка при получении пользователей: {e}")
            return ReadResult[UserRead](error=str(e))
        return ReadResult[UserRead](items=items)

    async def add_user(self, username: str, password: str) -> OperationResult:
        Session = await self.storage.get_handle()
        async with self.storage.write_lock:
            try:
                with Session() as session:
                    exists = session.scalar(
                        select(func.count()).select_from(UserModel).where(UserModel.username == username)
                    )
                    if exists:
                        return OperationResult(success=False, message="Username already exists", reason="conflict")

                    user = UserModel(username=username, password=hash_password(password), created_at=utc_now_iso())
                    session.add(user)
                    session.commit()
                    user_id = user.id
            except IntegrityError:
                return OperationResult(success=False, message="Username already exists", reason="conflict")
            except SQLAlchemyError as e:
                await self.log.log_error("auth", f"Ошибка при добавлении пользователя: {e}", {"username": username})
                return OperationResult(success=False, message="Error adding user", reason="storage")
            await self.storage.persist()

        await self.log.log_info("auth", "Пользователь добавлен", {"id": user_id, "username": username})
        return OperationResult(success=True, message="User added successfully", id=user_id)

    async def delete_user(self, user_id: int) -> OperationResult:
        """Удаление пользователя. Последнего admin удалить нельзя."""
        Session = await self.storage.get_handle()
        async with self.storage.write_lock:
            try:
                with Session() as session:
                    username = session.scalar(select(UserModel.username).where(UserModel.id == user_id))
                    admin_count = session.scalar(
                        select(func.count()).select_from(UserModel).where(UserModel.username == ADMIN_USERNAME)
                    )
                    blocked = username == ADMIN_USERNAME and admin_count <= 1
                    if not blocked:
                        session.execute(delete(UserModel).where(UserModel.id == user_id))
                        session.commit()
            except SQLAlchemyError as e:
                await self.log.log_error("auth", f"Ошибка при удалении пользователя: {e}", {"id": user_id})
                return OperationResult(success=False, message="Error deleting user", reason="storage")

            if blocked:
                await self.log.log_warning("auth", "Попытка удалить последнего администратора", {"id": user_id})
                return OperationResult(success=False, message="Cannot delete the last admin user", reason="conflict")
            await self.storage.persist()

        await self.log.log_info("auth", "Пользователь удалён", {"id": user_id})
        return OperationResult(success=True, message="User deleted successfully")

    async def update_user_password(self, user_id: int, new_password: str) -> OperationResult:
        """Перезапись пароля без проверки старого."""
        Session = await self.storage.get_handle()
        async with self.storage.write_lock:
            try:
                with Session() as session:
                    session.execute(
                        update(UserModel).where(UserModel.id == user_id).values(password=hash_password(new_password))
                    )
                    session.commit()
            except SQLAlchemyError as e:
                await self.log.log_error("auth", f"Ошибка при смене пароля: {e}", {"id": user_id})
                return OperationResult(success=False, message="Error updating password", reason="storage")
            await self.storage.persist()

        await self.log.log_info("auth", "Пароль обновлён", {"id": user_id})
        return OperationResult(success=True, message="Password updated successfully")
