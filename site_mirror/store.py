# File: site_mirror/store.py
"""site_mirror.store: Запись захваченных ресурсов в дерево каталогов зеркала."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Union

from site_mirror.errors import StorageError, UnsafePathError

__all__ = ["ResourceStore"]


class ResourceStore:
    """Пишет ``(relative_path, data)`` под корнем вывода.

    Родительские каталоги создаются по мере надобности, существующий файл
    перезаписывается. Текст (``str``) пишется в UTF-8, байты как есть.
    Параллельные записи в разные пути безопасны.
    """

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root).expanduser().resolve()

    def target(self, relative_path: str) -> Path:
        """Абсолютный путь файла; не даёт выйти за пределы корня."""
        target = (self.root / relative_path.lstrip("/")).resolve()
        if target != self.root and self.root not in target.parents:
            raise UnsafePathError(f"{relative_path!r} resolves outside {self.root}")
        if target == self.root:
            raise UnsafePathError("empty relative path")
        return target

    def _write_sync(self, target: Path, data: Union[str, bytes]) -> int:
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(data, str):
            data = data.encode("utf-8")
        target.write_bytes(data)
        return len(data)

    async def write(self, relative_path: str, data: Union[str, bytes]) -> int:
        """Записывает файл и возвращает число записанных байт.

        Raises:
            UnsafePathError: путь выходит за пределы корня.
            StorageError: ошибка mkdir/записи.
        """
        target = self.target(relative_path)
        try:
            return await asyncio.to_thread(self._write_sync, target, data)
        except OSError as exc:
            raise StorageError(relative_path, exc) from exc
