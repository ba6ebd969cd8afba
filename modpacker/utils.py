"""
通用工具函数

时间戳解析、slug 生成与 GitHub 仓库地址解析。
"""

import re
from datetime import datetime, timezone
from typing import Iterable, List, Optional
from urllib.parse import urlparse

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")
_TIMESTAMP = re.compile(r"^(.*?T\d{2}:\d{2}:\d{2})(?:\.(\d+))?(.*)$")

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def parse_timestamp(value: Optional[str]) -> datetime:
    """
    解析平台返回的 ISO 8601 时间

    兼容 'Z' 后缀和任意位数的小数秒，缺失时返回 Unix 纪元。
    """
    if not value:
        return EPOCH
    value = value.strip().replace("Z", "+00:00")
    if match := _TIMESTAMP.match(value):
        base, fraction, tz = match.groups()
        if fraction:
            base += "." + (fraction + "000000")[:6]
        value = base + tz
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def slugify(name: str) -> str:
    """将名称转换为文件名安全的 slug"""
    slug = _SLUG_STRIP.sub("-", name.lower()).strip("-")
    return slug or "addon"


def parse_github_repo(value: str) -> Optional[str]:
    """
    从 'owner/repo' 或 GitHub URL 中提取仓库名

    Returns:
        'owner/repo' 或 None
    """
    value = value.strip()
    if value.startswith(("http://", "https://")):
        parsed = urlparse(value)
        if parsed.netloc.lower() not in ("github.com", "www.github.com"):
            return None
        value = parsed.path
    parts = [part for part in value.strip("/").split("/") if part]
    if len(parts) < 2:
        return None
    owner, repo = parts[0], parts[1]
    if repo.endswith(".git"):
        repo = repo[:-4]
    return f"{owner}/{repo}"


def sorted_by_name(items: Iterable, key=lambda item: item.name) -> List:
    """按名称（不区分大小写）排序"""
    return sorted(items, key=lambda item: key(item).lower())
