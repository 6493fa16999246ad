# File: tests/test_config.py
import json
from pathlib import Path

import pytest
from pydantic import ValidationError
from site_mirror.config import MirrorConfig, load_config


def write_file(tmp_path: Path, content: str, suffix: str) -> Path:
    path = tmp_path / f"config{suffix}"
    path.write_text(content, encoding="utf-8")
    return path


@pytest.mark.parametrize(
    "content,suffix,expect_exc",
    [
        ("base_url: http://example.com\nconcurrency: 2", ".yaml", None),
        (json.dumps({"base_url": "http://example.com", "concurrency": 2}), ".json", None),
        ("{}", ".json", ValidationError),
        ("not: a: mapping", ".yaml", ValueError),
        ("- just\n- a list", ".yml", TypeError),
        ("[1, 2]", ".json", TypeError),
        ("{broken", ".json", ValueError),
        ("base_url = 'http://example.com'", ".toml", ValueError),
        ("base_url: http://example.com\nmax_depth: 3", ".yaml", ValidationError),
    ],
)
def test_load_config_variants(tmp_path, content, suffix, expect_exc):
    cfg_path = write_file(tmp_path, content, suffix)
    if expect_exc:
        with pytest.raises(expect_exc):
            load_config(cfg_path)
    else:
        cfg = load_config(cfg_path)
        assert isinstance(cfg, MirrorConfig)
        assert str(cfg.base_url).rstrip("/") == "http://example.com"
        assert cfg.concurrency == 2


def test_overrides_win_and_none_is_ignored(tmp_path):
    cfg_path = write_file(tmp_path, "base_url: http://example.com\nconcurrency: 8\nuse_sitemap: true", ".yaml")
    cfg = load_config(cfg_path, base_url="https://other.example", concurrency=None, use_sitemap=False)
    assert cfg.origin == "https://other.example"
    assert cfg.concurrency == 8
    assert cfg.use_sitemap is False


def test_explicit_path_must_exist(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.yaml")


def test_load_config_default_missing(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(ValidationError):
        load_config(None)
    cfg = load_config(None, base_url="https://example.com")
    assert cfg.concurrency == 4
    assert cfg.max_attempts == 3
    assert cfg.scroll_step == 600
    assert cfg.wait_until == "networkidle"


def test_load_config_default_file_is_used(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "configs").mkdir()
    (tmp_path / "configs" / "default.yaml").write_text("concurrency: 6\n", encoding="utf-8")
    cfg = load_config(None, base_url="https://example.com")
    assert cfg.concurrency == 6


def test_output_root_defaults_to_downloads_host():
    cfg = MirrorConfig(base_url="https://www.example.com:8443/start/")
    assert cfg.output_root == Path("downloads") / "www.example.com"
    assert cfg.origin == "https://www.example.com:8443"
    assert cfg.start_url == "https://www.example.com:8443/start/"


def test_output_dir_overrides_default(tmp_path):
    cfg = MirrorConfig(base_url="https://example.com", output_dir=tmp_path / "out")
    assert cfg.output_root == tmp_path / "out"


@pytest.mark.parametrize(
    "field,value",
    [
        ("concurrency", 0),
        ("max_attempts", 0),
        ("render_timeout", 0),
        ("wait_until", "whenever"),
        ("index_name", "sub/index.html"),
        ("index_name", ".."),
        ("base_url", "ftp://example.com"),
        ("base_url", "not a url"),
    ],
)
def test_invalid_values_rejected(field, value):
    params = {"base_url": "https://example.com", field: value}
    with pytest.raises(ValidationError):
        MirrorConfig(**params)


def test_backoff_must_not_exceed_cap():
    with pytest.raises(ValidationError):
        MirrorConfig(base_url="https://example.com", retry_backoff=10, retry_backoff_max=5)


def test_stylesheet_suffixes_are_lowercased():
    cfg = MirrorConfig(base_url="https://example.com", stylesheet_suffixes=[".CSS", ".Less"])
    assert cfg.stylesheet_suffixes == (".css", ".less")


def test_config_is_frozen():
    cfg = MirrorConfig(base_url="https://example.com")
    with pytest.raises(ValidationError):
        cfg.concurrency = 10
