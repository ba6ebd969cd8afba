import io

import pytest
from loguru import logger

from modpacker.logger import default_level, setup_logger


@pytest.fixture
def restore_logger():
    yield
    setup_logger()


@pytest.mark.parametrize(
    "env, expected",
    [
        ({}, "INFO"),
        ({"MODPACKER_DEBUG": "1"}, "DEBUG"),
        ({"MODPACKER_DEBUG": "1", "MODPACKER_LOG_LEVEL": "warning"}, "WARNING"),
    ],
)
def test_default_level(monkeypatch, env, expected):
    monkeypatch.delenv("MODPACKER_DEBUG", raising=False)
    monkeypatch.delenv("MODPACKER_LOG_LEVEL", raising=False)
    for name, value in env.items():
        monkeypatch.setenv(name, value)
    assert default_level() == expected


def test_file_sink_keeps_debug_messages(tmp_path, restore_logger):
    console = io.StringIO()
    log_file = tmp_path / "modpacker.log"
    setup_logger(level="INFO", sink=console, enqueue=False, colorize=False, log_file=log_file)

    logger.debug("[指纹] 只写入文件")
    logger.warning("[跳过] 两处都有")
    logger.remove()

    assert "只写入文件" not in console.getvalue()
    assert "WARNING  | [跳过] 两处都有" in console.getvalue()
    text = log_file.read_text(encoding="utf-8")
    assert "只写入文件" in text
    assert "两处都有" in text
