# === FILE: site_mirror/cli.py ===
#!/usr/bin/env python3
"""
Точка входа для запуска SiteMirror через командную строку.

Команды:
  mirror URL   Скачать офлайн-копию сайта
  config URL   Показать итоговую конфигурацию

Общие опции:
  --config PATH       Путь к YAML/JSON-конфигу (default: configs/default.yaml, если есть)
  --log-level LEVEL   Уровень логирования (DEBUG, INFO, ...)
  --log-file PATH     Файл для логов (stdout, если не указан)
  --log-format FORMAT Формат логирования

Команда mirror опции:
  --output DIR        Каталог вывода (default: downloads/<host>)
  --concurrency N     Число воркеров
  --max-attempts N    Попыток рендера на страницу
  --no-sitemap        Не читать sitemap.xml
  --json PATH         Сохранить JSON-отчёт
  --html PATH         Сохранить HTML-отчёт
  --run-timeout SEC   Таймаут всего зеркалирования (секунд)

Пример:
  site-mirror mirror https://example.com --output ./example --concurrency 4 --json report.json
"""
import asyncio
import sys
from pathlib import Path
from urllib.parse import urlsplit

import click
from pydantic import ValidationError

from site_mirror import __version__
from site_mirror.config import load_config
from site_mirror.engine import start_mirror
from site_mirror.logger import init_logging
from site_mirror.report.html_report import render_html
from site_mirror.report.json_report import render_json

CONTEXT_SETTINGS = dict(help_option_names=["--help", "-h"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


def validate_url(ctx, param, value: str) -> str:
    parts = urlsplit(value.strip())
    if parts.scheme not in ("http", "https") or not parts.hostname:
        raise click.BadParameter(f"'{value}' не является http(s) URL", ctx=ctx, param=param)
    return value.strip()


def build_config(ctx, url: str, **overrides):
    try:
        return load_config(ctx.obj['config_path'], base_url=url, **overrides)
    except (OSError, ValueError, TypeError, ValidationError) as e:
        print_error(f'Ошибка загрузки конфигурации: {e}')


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='SiteMirror, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Путь к файлу конфигурации YAML/JSON.'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень логирования'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Путь к файлу логов (stdout, если не указан)'
)
@click.option(
    '--log-format', 'log_format',
    default='%(asctime)s %(levelname)s %(message)s',
    show_default=True,
    help='Строка формата для логов'
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format):
    """Группа команд SiteMirror CLI."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config_path


@cli.command('mirror', context_settings=CONTEXT_SETTINGS)
@click.argument('url', callback=validate_url)
@click.option(
    '--output', '-o', 'output_dir',
    default=None,
    type=click.Path(file_okay=False, path_type=Path),
    help='Каталог вывода (default: downloads/<host>)'
)
@click.option('--concurrency', '-n', type=click.IntRange(min=1), default=None, help='Число воркеров')
@click.option('--max-attempts', type=click.IntRange(min=1), default=None, help='Попыток рендера на страницу')
@click.option('--no-sitemap', 'no_sitemap', is_flag=True, help='Не читать sitemap.xml')
@click.option(
    '--json', '-j', 'json_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить JSON-отчёт в файл'
)
@click.option(
    '--html', 'html_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить HTML-отчёт в файл'
)
@click.option(
    '--run-timeout', 'run_timeout',
    type=float,
    default=None,
    help='Таймаут всего зеркалирования (секунд)'
)
@click.pass_context
def mirror(ctx, url, output_dir, concurrency, max_attempts, no_sitemap, json_output, html_output, run_timeout):
    """Скачать офлайн-копию сайта URL."""
    cfg = build_config(
        ctx,
        url,
        output_dir=output_dir,
        concurrency=concurrency,
        max_attempts=max_attempts,
        use_sitemap=False if no_sitemap else None,
    )
    click.echo(f'Mirroring {cfg.start_url} -> {cfg.output_root}')
    try:
        if run_timeout:
            report = asyncio.run(
                asyncio.wait_for(start_mirror(cfg), timeout=run_timeout)
            )
        else:
            report = asyncio.run(start_mirror(cfg))
    except asyncio.TimeoutError:
        print_error(f'Зеркалирование не завершено за {run_timeout} секунд')
    except Exception as e:
        print_error(f'Ошибка при зеркалировании: {e}')

    click.echo(report.summary())

    if json_output:
        try:
            saved_json = render_json(report, json_output)
            click.echo(f'JSON report: {saved_json}')
        except OSError as e:
            print_error(f'Ошибка при сохранении JSON: {e}')

    if html_output:
        try:
            saved_html = render_html(report, html_output)
            click.echo(f'HTML report: {saved_html}')
        except OSError as e:
            print_error(f'Ошибка при сохранении HTML: {e}')


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.argument('url', callback=validate_url)
@click.pass_context
def show_config(ctx, url):
    """Показать итоговую конфигурацию в JSON."""
    cfg = build_config(ctx, url)
    click.echo(cfg.model_dump_json(indent=2))


if __name__ == "__main__":
    cli()
