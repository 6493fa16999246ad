# === FILE: site_mirror/config.py ===
"""
Модуль для загрузки и валидации конфигурации зеркалирования SiteMirror.
Используется Pydantic для описания схемы и проверки данных.
"""
from __future__ import annotations

import errno
import json
import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Tuple, Union
from urllib.parse import urlsplit

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    field_validator,
    model_validator,
)

from site_mirror.urls import origin_of


class MirrorConfig(BaseModel):
    """Конфигурация одного запуска зеркалирования."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    base_url: HttpUrl = Field(..., description="Стартовый URL зеркалируемого сайта.")
    output_dir: Optional[Path] = Field(None, description="Корень вывода (по умолчанию downloads/<host>).")
    concurrency: int = Field(4, ge=1, description="Число параллельных воркеров.")

    render_timeout: float = Field(60.0, gt=0, description="Таймаут рендера одной страницы (секунд).")
    wait_until: Literal["load", "domcontentloaded", "networkidle", "commit"] = "networkidle"
    settle_timeout: float = Field(5.0, ge=0, description="Ожидание тишины сети после прокрутки.")
    scroll_step: int = Field(600, ge=1, description="Шаг прокрутки (px).")
    scroll_pause: float = Field(0.1, ge=0, description="Пауза между шагами прокрутки (секунд).")
    max_scroll_steps: int = Field(200, ge=1, description="Предел числа шагов прокрутки.")

    max_attempts: int = Field(3, ge=1, description="Попыток рендера на один URL.")
    retry_backoff: float = Field(1.0, ge=0, description="Базовая задержка перед повтором.")
    retry_backoff_max: float = Field(30.0, ge=0, description="Максимальная задержка перед повтором.")

    index_name: str = Field("index.html", min_length=1, description="Имя индексного документа.")
    stylesheet_suffixes: Tuple[str, ...] = (".css",)

    use_sitemap: bool = True
    sitemap_timeout: float = Field(10.0, gt=0)
    max_sitemaps: int = Field(10, ge=1, description="Лимит вложенных sitemap из sitemapindex.")

    user_agent: Optional[str] = None
    headless: bool = True
    ignore_https_errors: bool = False

    @field_validator("base_url", mode="before")
    def _strip_whitespace(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("index_name")
    def _index_is_plain_name(cls, v: str) -> str:
        if "/" in v or "\\" in v or v in (".", ".."):
            raise ValueError("index_name must be a plain file name")
        return v

    @field_validator("stylesheet_suffixes", mode="before")
    def _lower_suffixes(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = [v]
        if isinstance(v, (list, tuple)):
            return tuple(str(s).lower() for s in v)
        return v

    @model_validator(mode="after")
    def _check_backoff(self) -> MirrorConfig:
        if self.retry_backoff > self.retry_backoff_max:
            raise ValueError("retry_backoff must not exceed retry_backoff_max")
        return self

    @property
    def start_url(self) -> str:
        return str(self.base_url)

    @property
    def origin(self) -> str:
        """scheme://host[:port] стартового URL."""
        return origin_of(self.start_url)

    @property
    def output_root(self) -> Path:
        if self.output_dir is not None:
            return Path(self.output_dir).expanduser()
        return Path("downloads") / (urlsplit(self.start_url).hostname or "site")


_DEFAULT_CFG = Path("configs/default.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Неправильный YAML в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень YAML должен быть mapping, получено {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Неправильный JSON в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень JSON должен быть mapping, получено {type(data).__name__}")
    return data


def _read_file(path_obj: Path) -> Dict[str, Any]:
    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return _read_yaml(path_obj)
    if suffix == ".json":
        return _read_json(path_obj)
    raise ValueError(f"Неподдерживаемый формат конфига: {suffix}")


def load_config(path: Union[str, Path, None], **overrides: Any) -> MirrorConfig:
    """
    Читает YAML или JSON, накладывает overrides (значения None пропускаются)
    и возвращает проверенный объект MirrorConfig.

    Без явного пути читается configs/default.yaml, если он есть.
    """
    if path is None:
        data = _read_file(_DEFAULT_CFG) if _DEFAULT_CFG.is_file() else {}
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))
        data = _read_file(path_obj)

    data.update({k: v for k, v in overrides.items() if v is not None})

    return MirrorConfig(**data)
