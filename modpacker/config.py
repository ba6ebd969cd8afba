"""
工具设置

从 modpacker.toml / modpacker.yaml / modpacker.json 读取设置，再应用环境变量覆盖。
"""

import json
import os
from dataclasses import dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Optional

import toml
import yaml

from modpacker.api.base import DEFAULT_USER_AGENT
from modpacker.exceptions import ConfigParseError, ConfigValidationError

SETTINGS_FILES = ("modpacker.toml", "modpacker.yaml", "modpacker.yml", "modpacker.json")


class DependencyPolicy(Enum):
    """依赖解析失败时的处理方式"""

    EAGER = "eager"  # 任一依赖失败则整体失败
    BEST_EFFORT = "best_effort"  # 跳过失败的依赖并记录


@dataclass
class Settings:
    """modpacker 设置"""

    curseforge_api_key: Optional[str] = None
    github_token: Optional[str] = None
    user_agent: str = DEFAULT_USER_AGENT
    max_concurrent_downloads: int = 10
    max_retries: int = 3
    retry_delay: float = 1.0
    dependency_policy: DependencyPolicy = DependencyPolicy.EAGER

    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigValidationError(
                f"未知的设置项: {', '.join(sorted(unknown))}",
                context={"keys": sorted(unknown)},
            )

        settings = cls(**{key: value for key, value in data.items() if key != "dependency_policy"})
        if "dependency_policy" in data:
            settings.dependency_policy = parse_policy(data["dependency_policy"])
        settings.validate()
        return settings

    def validate(self):
        if not isinstance(self.max_concurrent_downloads, int) or self.max_concurrent_downloads < 1:
            raise ConfigValidationError("max_concurrent_downloads 必须是正整数")
        if not isinstance(self.max_retries, int) or self.max_retries < 1:
            raise ConfigValidationError("max_retries 必须是正整数")
        if not isinstance(self.retry_delay, (int, float)) or self.retry_delay < 0:
            raise ConfigValidationError("retry_delay 不能为负数")


def parse_policy(value: str) -> DependencyPolicy:
    try:
        return DependencyPolicy(str(value).lower().replace("-", "_"))
    except ValueError:
        raise ConfigValidationError(
            f"dependency_policy 必须为 eager 或 best_effort，而不是 {value}"
        ) from None


def load_config(config_path: Path) -> dict:
    """加载配置文件"""
    suffix = config_path.suffix.lower()

    try:
        if suffix == ".toml":
            return toml.load(config_path)
        elif suffix == ".json":
            return json.loads(config_path.read_text(encoding="utf-8"))
        elif suffix in (".yaml", ".yml"):
            return yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except (toml.TomlDecodeError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigParseError(f"无法解析配置文件 {config_path}: {e}") from e

    raise ConfigParseError(f"不支持的配置文件格式: {suffix}")


def find_settings_file(root: Path) -> Optional[Path]:
    for name in SETTINGS_FILES:
        path = root / name
        if path.is_file():
            return path
    return None


def load_settings(path: Optional[Path] = None, root: Optional[Path] = None) -> Settings:
    """
    加载设置

    Args:
        path: 显式指定的设置文件
        root: 查找默认设置文件的目录（默认当前目录）

    Returns:
        应用了环境变量覆盖的 Settings
    """
    if path is None:
        path = find_settings_file(Path(root) if root else Path.cwd())
    elif not Path(path).is_file():
        raise ConfigParseError(f"配置文件不存在: {path}")

    settings = Settings.from_dict(load_config(Path(path))) if path else Settings()

    if api_key := os.environ.get("CURSEFORGE_API_KEY"):
        settings.curseforge_api_key = api_key
    if token := os.environ.get("GITHUB_TOKEN"):
        settings.github_token = token
    if policy := os.environ.get("MODPACKER_DEPENDENCY_POLICY"):
        settings.dependency_policy = parse_policy(policy)

    return settings
