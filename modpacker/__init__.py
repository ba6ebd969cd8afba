"""
modpacker - Minecraft 整合包管理工具

管理 Modrinth、CurseForge 和 GitHub 上的 Addon，导入导出 mrpack、CurseForge 和 packwiz 格式。
"""

from modpacker.logger import setup_logger

__version__ = "0.1.0"

setup_logger()
