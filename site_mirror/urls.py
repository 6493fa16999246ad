# File: site_mirror/urls.py
"""site_mirror.urls: URL → путь на диске и переписывание ссылок в HTML/CSS.

Все функции чистые: origin и имя индексного документа передаются явно,
никаких глобальных констант.

Переписывание текстовое (регулярные выражения), а не через DOM. Известные
ограничения: протокол-относительные ссылки (``//host/...``), URL внутри
inline-обработчиков, ``data-*`` атрибутов и ``srcset`` не переписываются.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, Optional, Sequence
from urllib.parse import unquote, urlsplit

from site_mirror.errors import OutOfScopeError, UnsafePathError

__all__: Sequence[str] = (
    "origin_of",
    "is_in_scope",
    "clean_path",
    "relative_prefix",
    "is_stylesheet",
    "rewrite_markup",
    "rewrite_stylesheet",
)

DEFAULT_INDEX = "index.html"

# href="/x", src='/x', но не протокол-относительные href="//cdn/x"
_ROOT_ATTR_RE = re.compile(r"""(\b(?:href|src)\s*=\s*)(["'])/(?!/)""", re.IGNORECASE)
# url("/x"), url('/x'), url(/x)
_ROOT_CSS_URL_RE = re.compile(r"""(url\(\s*)(["']?)/(?!/)""", re.IGNORECASE)


def origin_of(url: str) -> str:
    """Возвращает ``scheme://host[:port]`` в нижнем регистре."""
    parts = urlsplit(url)
    return f"{parts.scheme.lower()}://{parts.netloc.lower()}"


def is_in_scope(url: str, origin: str) -> bool:
    """True, если URL http(s) и принадлежит тому же origin."""
    parts = urlsplit(url)
    if parts.scheme.lower() not in ("http", "https") or not parts.netloc:
        return False
    return origin_of(url) == origin


def clean_path(url: str, origin: str, index_name: str = DEFAULT_INDEX) -> str:
    """Отображает URL внутри origin в относительный путь в зеркале.

    Query и fragment отбрасываются, ``""`` и ``"/"`` превращаются в
    индексный документ, путь на ``/`` получает его в конец. Результат
    никогда не начинается с разделителя и не содержит ``..``.

    >>> clean_path("https://site.example/css/a.css?ver=3", "https://site.example")
    'css/a.css'
    >>> clean_path("https://site.example/blog/", "https://site.example")
    'blog/index.html'
    """
    if not is_in_scope(url, origin):
        raise OutOfScopeError(url, origin)

    path = unquote(urlsplit(url).path)
    if "\x00" in path or "\\" in path:
        raise UnsafePathError(f"unsafe characters in {url!r}")
    if path in ("", "/"):
        return index_name
    if path.endswith("/"):
        path += index_name

    segments = [s for s in path.split("/") if s not in ("", ".")]
    if ".." in segments:
        raise UnsafePathError(f"{url!r} escapes the mirror root")
    return "/".join(segments)


def relative_prefix(path: Optional[str]) -> str:
    """``../`` на каждый уровень вложенности файла ``path`` в зеркале."""
    if not path:
        return ""
    return "../" * path.count("/")


def is_stylesheet(path: str, suffixes: Iterable[str] = (".css",)) -> bool:
    return path.lower().endswith(tuple(suffixes))


@lru_cache(maxsize=32)
def _origin_re(origin: str) -> re.Pattern[str]:
    # origin не должен цепляться за более длинный хост или порт
    return re.compile(re.escape(origin) + r"(?![\w.:-])/?", re.IGNORECASE)


def _strip_origin(text: str, origin: str, prefix: str) -> str:
    return _origin_re(origin).sub(lambda _m: prefix, text)


def _rewrite_root_css_urls(text: str, prefix: str) -> str:
    return _ROOT_CSS_URL_RE.sub(lambda m: f"{m.group(1)}{m.group(2)}{prefix}", text)


def rewrite_markup(html: str, origin: str, document_path: Optional[str] = None) -> str:
    """Делает ссылки HTML-документа относительными к корню зеркала.

    Абсолютные ссылки на origin и корневые ``href="/…"``, ``src="/…"``,
    ``url("/…")`` получают префикс ``../`` по глубине ``document_path``
    (для документа в корне префикс пустой).
    """
    prefix = relative_prefix(document_path)
    html = _strip_origin(html, origin, prefix)
    html = _ROOT_ATTR_RE.sub(lambda m: f"{m.group(1)}{m.group(2)}{prefix}", html)
    return _rewrite_root_css_urls(html, prefix)


def rewrite_stylesheet(css: str, origin: str, stylesheet_path: Optional[str] = None) -> str:
    """Убирает origin из ``url(...)`` (в кавычках и без) и голых ссылок CSS."""
    prefix = relative_prefix(stylesheet_path)
    css = _strip_origin(css, origin, prefix)
    return _rewrite_root_css_urls(css, prefix)
