"""
modpacker 统一异常体系

提供分层的异常结构，支持错误代码、上下文信息和 JSON 序列化。
"""

from typing import Any, Dict, Optional

import aiohttp


class ModpackerError(Exception):
    """modpacker 基础异常类"""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self._get_default_code()
        self.context = context or {}

    def _get_default_code(self) -> str:
        """获取默认错误代码"""
        return "E000"

    def to_dict(self) -> Dict[str, Any]:
        """将异常转换为字典格式"""
        return {
            "error": True,
            "code": self.code,
            "message": self.message,
            "context": self.context,
            "type": self.__class__.__name__,
        }

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class ConfigError(ModpackerError):
    """配置相关错误"""

    def _get_default_code(self) -> str:
        return "E100"


class ConfigParseError(ConfigError):
    """配置解析错误"""

    def _get_default_code(self) -> str:
        return "E101"


class ConfigValidationError(ConfigError):
    """配置验证错误"""

    def _get_default_code(self) -> str:
        return "E102"


class UninitializedError(ConfigError):
    """当前目录没有整合包"""

    def __init__(self, message: str = "当前目录没有整合包，请先运行 'modpacker init'"):
        super().__init__(message)

    def _get_default_code(self) -> str:
        return "E103"


class InvalidIdError(ConfigError):
    """项目 ID/slug 格式无效（未发出任何请求）"""

    def __init__(self, idx: str, registry: str = "modrinth"):
        super().__init__(
            f"'{idx}' 不是有效的 {registry} ID/slug",
            context={"id": idx, "registry": registry},
        )
        self.idx = idx

    def _get_default_code(self) -> str:
        return "E104"


class APIError(ModpackerError):
    """API 相关错误"""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        response: Optional[aiohttp.ClientResponse] = None,
    ):
        super().__init__(message, code, context)
        self.response = response
        if response is not None:
            self.context["status_code"] = response.status
            self.context["url"] = str(response.url)

    def _get_default_code(self) -> str:
        return "E200"


class APINotFoundError(APIError):
    """API 资源不存在"""

    def _get_default_code(self) -> str:
        return "E404"


class APIRateLimitError(APIError):
    """API 速率限制"""

    def __init__(
        self,
        registry: str,
        retry_after: Optional[str] = None,
        response: Optional[aiohttp.ClientResponse] = None,
    ):
        super().__init__(
            f"超出 {registry} 的速率限制，请在 {retry_after or '?'} 秒后重试",
            context={"registry": registry, "retry_after": retry_after},
            response=response,
        )
        self.registry = registry
        self.retry_after = retry_after

    def _get_default_code(self) -> str:
        return "E429"


class APIServerError(APIError):
    """API 服务器错误"""

    def _get_default_code(self) -> str:
        return "E500"


class DownloadError(ModpackerError):
    """下载相关错误"""

    def _get_default_code(self) -> str:
        return "E300"


class DownloadNetworkError(DownloadError):
    """下载网络错误"""

    def _get_default_code(self) -> str:
        return "E301"


class DownloadChecksumError(DownloadError):
    """下载校验错误"""

    def _get_default_code(self) -> str:
        return "E302"


class DownloadFileError(DownloadError):
    """下载文件操作错误"""

    def _get_default_code(self) -> str:
        return "E303"


class PackagerError(ModpackerError):
    """打包相关错误"""

    def _get_default_code(self) -> str:
        return "E400"


class MrpackError(PackagerError):
    """Mrpack 生成错误"""

    def _get_default_code(self) -> str:
        return "E401"


class CurseforgePackError(PackagerError):
    """CurseForge 整合包生成错误"""

    def _get_default_code(self) -> str:
        return "E402"


class PackwizError(PackagerError):
    """packwiz 目录生成错误"""

    def _get_default_code(self) -> str:
        return "E403"


class BadImportError(ModpackerError):
    """外部整合包格式错误或不受支持"""

    def _get_default_code(self) -> str:
        return "E410"


class ResolveError(ModpackerError):
    """模组解析相关错误"""

    def _get_default_code(self) -> str:
        return "E600"


class NoCompatibleVersionsError(ResolveError):
    """没有与整合包兼容的版本"""

    def __init__(self, name: str):
        super().__init__(f"{name} 没有与整合包兼容的版本", context={"name": name})
        self.name = name

    def _get_default_code(self) -> str:
        return "E601"


class UnsupportedProjectTypeError(ResolveError):
    """项目类型不受支持"""

    def __init__(self, name: str):
        super().__init__(f"无法添加 {name}：项目类型不受支持", context={"name": name})
        self.name = name

    def _get_default_code(self) -> str:
        return "E602"


class NoLoaderSupportError(ResolveError):
    """加载器没有适用于该游戏版本的版本"""

    def __init__(self, loader: str, mc_version: str):
        super().__init__(
            f"{loader} 加载器没有适用于 {mc_version} 的版本",
            context={"loader": loader, "mc_version": mc_version},
        )

    def _get_default_code(self) -> str:
        return "E603"


__all__ = [
    # 基础异常
    "ModpackerError",
    # 配置异常
    "ConfigError",
    "ConfigParseError",
    "ConfigValidationError",
    "UninitializedError",
    "InvalidIdError",
    # API 异常
    "APIError",
    "APINotFoundError",
    "APIRateLimitError",
    "APIServerError",
    # 下载异常
    "DownloadError",
    "DownloadNetworkError",
    "DownloadChecksumError",
    "DownloadFileError",
    # 打包异常
    "PackagerError",
    "MrpackError",
    "CurseforgePackError",
    "PackwizError",
    "BadImportError",
    # 解析异常
    "ResolveError",
    "NoCompatibleVersionsError",
    "UnsupportedProjectTypeError",
    "NoLoaderSupportError",
]
