import os

import pytest

from shared.config import ServerConfig
from shared.constants import DEFAULT_PORT, DEFAULT_MAX_FILES_PER_UPLOAD


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ("STORAGE_DIR", "HOST", "PORT", "PUBLIC_URL", "MAX_UPLOAD_MB",
                 "MAX_FILES", "SCAN_WORKERS", "EXTRACT_TIMEOUT"):
        monkeypatch.delenv(f"MUSICSHELF_{name}", raising=False)
    # Keep a stray .env in the working directory out of the picture
    monkeypatch.chdir(tmp_path)


def test_defaults(tmp_path):
    config = ServerConfig.from_env(storage_dir=str(tmp_path / "lib"))

    assert config.port == DEFAULT_PORT
    assert config.max_files_per_upload == DEFAULT_MAX_FILES_PER_UPLOAD
    assert config.max_upload_bytes == 100 * 1024 * 1024
    assert config.public_url is None
    assert config.catalog_path == tmp_path / "lib" / "music-list.json"
    assert config.covers_dir == tmp_path / "lib" / "covers"


def test_environment_values(monkeypatch, tmp_path):
    monkeypatch.setenv("MUSICSHELF_STORAGE_DIR", str(tmp_path / "env-lib"))
    monkeypatch.setenv("MUSICSHELF_PORT", "8080")
    monkeypatch.setenv("MUSICSHELF_PUBLIC_URL", "https://music.example/")
    monkeypatch.setenv("MUSICSHELF_MAX_UPLOAD_MB", "1.5")
    monkeypatch.setenv("MUSICSHELF_EXTRACT_TIMEOUT", "2")

    config = ServerConfig.from_env()

    assert config.storage_dir == tmp_path / "env-lib"
    assert config.port == 8080
    assert config.public_url == "https://music.example"
    assert config.max_upload_bytes == int(1.5 * 1024 * 1024)
    assert config.extract_timeout == 2.0


def test_overrides_win_and_none_is_ignored(monkeypatch, tmp_path):
    monkeypatch.setenv("MUSICSHELF_STORAGE_DIR", str(tmp_path / "env-lib"))
    monkeypatch.setenv("MUSICSHELF_PORT", "8080")

    config = ServerConfig.from_env(storage_dir=str(tmp_path / "cli-lib"), port=None)

    assert config.storage_dir == tmp_path / "cli-lib"
    assert config.port == 8080


def test_env_file(tmp_path):
    env_file = tmp_path / "custom.env"
    env_file.write_text(f"MUSICSHELF_STORAGE_DIR={tmp_path / 'dotenv-lib'}\nMUSICSHELF_SCAN_WORKERS=7\n")

    try:
        config = ServerConfig.from_env(str(env_file))
    finally:
        # load_dotenv writes into os.environ
        os.environ.pop("MUSICSHELF_STORAGE_DIR", None)
        os.environ.pop("MUSICSHELF_SCAN_WORKERS", None)

    assert config.storage_dir == tmp_path / "dotenv-lib"
    assert config.scan_workers == 7


def test_invalid_number(monkeypatch):
    monkeypatch.setenv("MUSICSHELF_PORT", "eighty")

    with pytest.raises(ValueError, match="MUSICSHELF_"):
        ServerConfig.from_env()
