# leadstore/utils/kv_store.py

"""
Долговременное key-value хранилище для снимков базы.
Значение под ключом: полный бинарный образ SQLite базы.
"""

import os
import re
import aiofiles

KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


def check_key(key: str) -> str:
    if not KEY_PATTERN.match(key) or key in (".", ".."):
        raise ValueError(f"Недопустимый ключ хранилища: {key!r}")
    return key


class FileKeyValueStore:
    """Один файл на ключ в каталоге directory. Запись атомарная (временный файл + os.replace)."""

    def __init__(self, directory: str, suffix: str = ".db"):
        self.directory = directory
        self.suffix = suffix

    def path_for(self, key: str) -> str:
        return os.path.join(self.directory, check_key(key) + self.suffix)

    async def get(self, key: str) -> bytes | None:
        path = self.path_for(key)
        if not os.path.exists(path):
            return None
        async with aiofiles.open(path, mode="rb") as f:
            return await f.read()

    async def set(self, key: str, value: bytes) -> None:
        path = self.path_for(key)
        os.makedirs(self.directory, exist_ok=True)
        tmp_path = path + ".tmp"
        try:
            async with aiofiles.open(tmp_path, mode="wb") as f:
                await f.write(value)
            os.replace(tmp_path, path)
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    async def delete(self, key: str) -> None:
        try:
            os.remove(self.path_for(key))
        except FileNotFoundError:
            pass


class MemoryKeyValueStore:
    """Хранилище в памяти процесса: для тестов и запусков без диска."""

    def __init__(self, initial: dict[str, bytes] | None = None):
        self.data = dict(initial or {})

    async def get(self, key: str) -> bytes | None:
        return self.data.get(check_key(key))

    async def set(self, key: str, value: bytes) -> None:
        self.data[check_key(key)] = bytes(value)

    async def delete(self, key: str) -> None:
        self.data.pop(check_key(key), None)
