from typing import Optional

from fastapi import status


class CloudStoreException(Exception):
    """
    基础异常类

    每个子类携带映射到HTTP层的状态码和默认错误信息
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "服务器内部错误"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class BadRequestException(CloudStoreException):
    """请求参数异常"""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "请求参数有误"


class InvalidPathException(BadRequestException):
    """路径不符合规则"""

    default_detail = "无效或缺失的资源路径"


class InvalidArgumentException(BadRequestException):
    """参数无效（缺少文件名、移动到自身内部、空查询等）"""

    default_detail = "请求参数无效"


class FileTooLargeException(BadRequestException):
    """文件过大异常"""

    default_detail = "文件大小超过限制"


class BadFormatException(BadRequestException):
    """不支持的文件格式"""

    default_detail = "不支持的文件格式"


class TypeMismatchException(BadRequestException):
    """两个路径指向不同类型的资源（文件/文件夹）"""

    default_detail = "两个路径的资源类型不一致（文件/文件夹）"


class SameResourceException(BadRequestException):
    """源路径与目标路径完全相同"""

    default_detail = "源路径与目标路径完全相同"


class CredentialsException(CloudStoreException):
    """认证失败异常"""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "认证凭证无效"


class NotFoundException(CloudStoreException):
    """资源不存在异常"""

    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "资源不存在"


class ParentNotFoundException(NotFoundException):
    """父文件夹不存在"""

    default_detail = "父文件夹不存在"


class AlreadyExistsException(CloudStoreException):
    """资源已存在异常"""

    status_code = status.HTTP_409_CONFLICT
    default_detail = "资源已存在"


class StorageIOException(CloudStoreException):
    """对象存储、元数据库或消息总线故障"""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "存储服务出现错误"
