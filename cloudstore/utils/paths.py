"""
路径引擎

把用户提交的相对路径转换为对象存储中的键：
- 分类：以 "/" 结尾或最后一段不含 "." 的路径视为文件夹，否则为文件
- 规范化：去掉开头的 "/"，拼接租户根前缀，文件夹保证恰好一个结尾 "/"
- 校验：拒绝 "//"、"." 与 ".." 段以及非法字符

全部为纯函数，不做任何I/O
"""

import re
from typing import List, Optional
from urllib.parse import quote_plus

from cloudstore.core.exceptions import InvalidPathException
from cloudstore.schemas.resource import ResourceType

ROOT_PREFIX_TEMPLATE = "user-{tenant_id}-files/"

# 段内允许：Unicode字母、数字、空格、下划线、连字符
_SEGMENT = r"[\w \-]+"
_FOLDER_PATTERN = re.compile(rf"(?:{_SEGMENT}/)+")
_FILE_PATTERN = re.compile(rf"(?:{_SEGMENT}/)*{_SEGMENT}\.[^\W_]+")
_LEADING_SLASHES = re.compile(r"^/+")


def root_prefix(tenant_id: int) -> str:
    """租户根前缀，例如 user-1-files/"""
    return ROOT_PREFIX_TEMPLATE.format(tenant_id=tenant_id)


def is_folder_path(path: str) -> bool:
    """
    判断路径是否指向文件夹

    test/ -> True, test/test2 -> True, test/test2.txt -> False
    """
    if path.endswith("/"):
        return True
    last_segment = path.rsplit("/", 1)[-1]
    return "." not in last_segment


def classify(path: str) -> ResourceType:
    return ResourceType.DIRECTORY if is_folder_path(path) else ResourceType.FILE


def strip_leading_slashes(path: Optional[str]) -> str:
    if path is None or not path.strip():
        return ""
    return _LEADING_SLASHES.sub("", path)


def resolve(tenant_id: int, path: Optional[str]) -> str:
    """
    把用户路径解析为对象键

    test/test2 -> user-1-files/test/test2/
    """
    key = root_prefix(tenant_id) + strip_leading_slashes(path)
    if is_folder_path(key) and not key.endswith("/"):
        key += "/"
    return key


def validate_folder(key: str) -> None:
    if not _FOLDER_PATTERN.fullmatch(key):
        raise InvalidPathException(f"无效的文件夹路径: {key}")


def validate_file(key: str) -> None:
    if not _FILE_PATTERN.fullmatch(key):
        raise InvalidPathException(f"无效的文件路径: {key}")


def validate(key: str) -> None:
    """按路径类型选择校验规则"""
    if is_folder_path(key):
        validate_folder(key)
    else:
        validate_file(key)


def parent(key: str) -> Optional[str]:
    """
    获取父文件夹的键

    user-1-files/test/a.txt -> user-1-files/test/
    user-1-files/test/ -> user-1-files/
    user-1-files/ -> None
    """
    index = key.rfind("/", 0, len(key) - 1)
    if index > 0:
        return key[: index + 1]
    return None


def basename(key: str) -> str:
    """test/test2.txt -> test2.txt, test/test2/ -> test2"""
    trimmed = key[:-1] if key.endswith("/") else key
    return trimmed.rsplit("/", 1)[-1]


def same_type(first: str, second: str) -> bool:
    return is_folder_path(first) == is_folder_path(second)


def is_within(outer: str, inner: str) -> bool:
    """inner 是否位于 outer 文件夹内部（不含 outer 本身）"""
    boundary = outer if outer.endswith("/") else outer + "/"
    return inner != boundary and inner.startswith(boundary)


def ensure_owned(tenant_id: int, key: str) -> str:
    """租户隔离：键必须以租户根前缀开头"""
    if not key.startswith(root_prefix(tenant_id)):
        raise InvalidPathException(f"路径不属于当前用户: {key}")
    return key


def ancestors(key: str) -> List[str]:
    """
    从根前缀到该键所在文件夹的所有文件夹键

    user-1-files/a/b/c.txt -> [user-1-files/, user-1-files/a/, user-1-files/a/b/]
    """
    folder = key if key.endswith("/") else key[: key.rfind("/") + 1]
    result = []
    index = folder.find("/")
    while index != -1:
        result.append(folder[: index + 1])
        index = folder.find("/", index + 1)
    return result


def content_disposition(name: str) -> str:
    """RFC 5987 格式的附件下载头"""
    encoded = quote_plus(name, encoding="utf-8").replace("+", "%20")
    return f"attachment; filename*=UTF-8''{encoded}"
