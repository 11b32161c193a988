# leadstore/utils/security.py

"""
Хэширование паролей администраторов и их проверка.
Используется passlib с sha256_crypt (соль + много раундов, сравнение за постоянное время).
"""

from passlib.context import CryptContext

from leadstore.config import settings

# Контекст хэширования: число раундов берётся из настроек (в тестах его уменьшают)
pwd_context = CryptContext(
    schemes=["sha256_crypt"],
    deprecated="auto",
    sha256_crypt__default_rounds=settings.PASSWORD_HASH_ROUNDS,
)


def hash_password(password: str) -> str:
    """
    Хэширует пароль.

    :param password: строка пароля пользователя
    :return: хэш вида $5$rounds=...$соль$хэш
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Проверяет совпадение пароля с его хэшем.
    Некорректный хэш в базе считается несовпадением.
    """
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        return False


def is_password_hash(value: str) -> bool:
    """True, если строка уже является хэшем известной схемы (а не открытым паролем)."""
    return pwd_context.identify(value, required=False) is not None
