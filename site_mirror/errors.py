# File: site_mirror/errors.py
"""site_mirror.errors: Иерархия исключений зеркалирования."""

from __future__ import annotations

__all__ = ["MirrorError", "OutOfScopeError", "UnsafePathError", "StorageError"]


class MirrorError(Exception):
    """Базовое исключение SiteMirror."""


class OutOfScopeError(MirrorError):
    """URL не принадлежит целевому origin."""

    def __init__(self, url: str, origin: str) -> None:
        super().__init__(f"{url} is outside of {origin}")
        self.url = url
        self.origin = origin


class UnsafePathError(MirrorError):
    """Нормализованный путь выходит за пределы корня вывода."""


class StorageError(MirrorError):
    """Не удалось создать каталог или записать файл."""

    def __init__(self, path: str, cause: OSError) -> None:
        super().__init__(f"cannot write {path}: {cause}")
        self.path = path
        self.cause = cause
