from datetime import timedelta
from pathlib import Path

import pytest

from sherpa.config import (
    DEFAULT_IGNORE,
    ProcessingConfig,
    SherpaConfig,
    load_config,
    override_with_settings,
    validate_config,
)
from sherpa.exceptions import ConfigValidationError
from sherpa.settings import Settings


@pytest.mark.unit
def test_defaults() -> None:
    config = load_config()

    assert config.gitlab.base_url == "https://gitlab.com"
    assert config.gitlab.token_env == "GITLAB_TOKEN"
    assert config.github.base_url == "https://api.github.com"
    assert config.github.token_env == "GITHUB_TOKEN"
    assert config.processing.ignore == DEFAULT_IGNORE
    assert config.processing.max_file_size == "1MB"
    assert config.processing.skip_binary is True
    assert config.processing.max_concurrency == 20
    assert config.processing.max_files == 1000
    assert config.processing.max_memory_per_file == 5 * 1024 * 1024
    assert config.processing.max_total_memory == 5 * 1024 * 1024 * 1024
    assert config.output.directory == Path("./sherpa-output")
    assert config.output.organize_by_date is False
    assert config.cache.enabled is False


@pytest.mark.unit
def test_missing_file_yields_defaults(tmp_path: Path) -> None:
    assert load_config(tmp_path / "absent.yaml") == SherpaConfig()


@pytest.mark.unit
def test_load_config_merges_file_over_defaults(tmp_path: Path) -> None:
    path = tmp_path / "sherpa.yaml"
    path.write_text(
        "gitlab:\n"
        "  base_url: https://gitlab.example.com\n"
        "processing:\n"
        "  ignore: ['*.lock']\n"
        "  max_concurrency: 4\n"
        "output:\n"
        "  directory: ./docs/llms\n"
        "  organize_by_date: true\n"
        "cache:\n"
        "  enabled: true\n"
        "  ttl: 3600\n",
        encoding="utf-8",
    )

    config = load_config(path)

    assert config.gitlab.base_url == "https://gitlab.example.com"
    assert config.gitlab.token_env == "GITLAB_TOKEN"
    assert config.processing.ignore == ["*.lock"]
    assert config.processing.max_concurrency == 4
    assert config.processing.max_files == 1000
    assert config.output.directory == Path("docs/llms")
    assert config.output.organize_by_date is True
    assert config.cache.ttl == timedelta(hours=1)


@pytest.mark.unit
@pytest.mark.parametrize(
    "content",
    [
        "processing: [unclosed\n",
        "- just\n- a list\n",
        "processing:\n  max_concurrency: many\n",
    ],
)
def test_load_config_rejects_bad_files(tmp_path: Path, content: str) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigValidationError, match="configuration validation failed"):
        load_config(path)


@pytest.mark.unit
def test_override_with_settings_routes_base_url() -> None:
    config = SherpaConfig()

    gitlab = override_with_settings(config, Settings(base_url="https://git.corp.local"))
    github = override_with_settings(config, Settings(base_url="https://github.com"))

    assert gitlab.gitlab.base_url == "https://git.corp.local"
    assert gitlab.github.base_url == "https://api.github.com"
    assert github.github.base_url == "https://github.com"
    assert github.gitlab.base_url == "https://gitlab.com"


@pytest.mark.unit
def test_override_with_settings_applies_cli_values() -> None:
    settings = Settings(
        output="out",
        ignore="*.lock, dist/",
        include_only="*.go",
        max_files_concurrency=3,
        max_files=50,
        max_memory_per_file=1024,
        max_total_memory=4096,
    )

    config = override_with_settings(SherpaConfig(), settings)

    assert config.output.directory == Path("out")
    assert config.processing.ignore == ["*.lock", "dist/"]
    assert config.processing.include_only == ["*.go"]
    assert config.processing.max_concurrency == 3
    assert config.processing.max_files == 50
    assert config.processing.max_memory_per_file == 1024
    assert config.processing.max_total_memory == 4096


@pytest.mark.unit
def test_override_with_settings_keeps_config_when_options_absent(tmp_path: Path) -> None:
    path = tmp_path / "sherpa.yaml"
    path.write_text("output:\n  directory: from-file\nprocessing:\n  max_files: 9\n", encoding="utf-8")

    config = override_with_settings(load_config(path), Settings())

    assert config.output.directory == Path("from-file")
    assert config.processing.max_files == 9
    assert config.processing.ignore == DEFAULT_IGNORE


@pytest.mark.unit
def test_processing_config_helpers() -> None:
    processing = ProcessingConfig(max_file_size="2KB", max_files=5, max_memory_per_file=10, max_total_memory=100)

    assert processing.max_file_size_bytes == 2048
    assert ProcessingConfig(max_file_size="").max_file_size_bytes is None
    limits = processing.resource_limits()
    assert (limits.max_files, limits.max_memory_per_file, limits.max_total_memory) == (5, 10, 100)


@pytest.mark.unit
@pytest.mark.parametrize(
    "processing",
    [
        ProcessingConfig(max_concurrency=0),
        ProcessingConfig(max_files=-1),
        ProcessingConfig(max_memory_per_file=0),
        ProcessingConfig(max_total_memory=0),
        ProcessingConfig(max_file_size="lots"),
    ],
)
def test_validate_config_rejects_bad_limits(processing: ProcessingConfig) -> None:
    with pytest.raises(ConfigValidationError):
        validate_config(SherpaConfig(processing=processing))


@pytest.mark.unit
def test_validate_config_accepts_defaults() -> None:
    validate_config(SherpaConfig())
