"""
对象存储接口定义

所有后端（S3兼容存储、内存存储）都必须实现 ObjectStore 约定：
- 传输/IO故障统一抛出 StorageIOException
- 对象不存在时抛出 ObjectNotFoundError
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import BinaryIO, Iterator, Optional

from cloudstore.core.exceptions import NotFoundException

FOLDER_CONTENT_TYPE = "application/octet-stream"


class ObjectNotFoundError(NotFoundException):
    """对象存储中不存在该键"""

    def __init__(self, key: str):
        super().__init__(f"对象不存在: {key}")
        self.key = key


@dataclass(frozen=True)
class ObjectStat:
    """单个对象的元信息"""

    key: str
    size: int
    content_type: Optional[str]


@dataclass(frozen=True)
class ObjectItem:
    """列举结果中的一项，is_dir 表示文件夹标记或公共前缀"""

    key: str
    size: int
    is_dir: bool


class ObjectStore(ABC):
    """
    S3风格对象存储的最小能力集
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """后端标识，用于日志与健康检查"""

    @abstractmethod
    def bucket_ensure(self) -> None:
        """启动时幂等地创建存储桶"""

    @abstractmethod
    def put(
        self,
        key: str,
        reader: BinaryIO,
        size: int,
        content_type: Optional[str] = None,
    ) -> None:
        """
        写入对象

        参数:
            key: 对象键
            reader: 数据流，长度为0时用于创建文件夹标记
            size: 声明的数据长度
            content_type: MIME类型
        """

    @abstractmethod
    def stat(self, key: str) -> ObjectStat:
        """获取对象元信息，不存在时抛出 ObjectNotFoundError"""

    @abstractmethod
    def get(self, key: str) -> BinaryIO:
        """打开对象的流式读取器，调用方负责 close()"""

    @abstractmethod
    def list(
        self,
        prefix: str,
        delimiter: str = "/",
        recursive: bool = False,
        max_keys: Optional[int] = None,
    ) -> Iterator[ObjectItem]:
        """
        按前缀列举对象

        参数:
            prefix: 键前缀
            delimiter: 非递归模式下的分隔符，子文件夹以公共前缀返回
            recursive: 为True时忽略分隔符，返回前缀下的全部键
            max_keys: 最多返回的条目数
        """

    @abstractmethod
    def copy(self, src: str, dst: str) -> None:
        """服务端复制，保留元数据"""

    @abstractmethod
    def remove(self, key: str) -> None:
        """删除单个对象，键不存在不视为错误"""

    def exists(self, key: str) -> bool:
        try:
            self.stat(key)
            return True
        except ObjectNotFoundError:
            return False

    def prefix_exists(self, prefix: str) -> bool:
        """前缀下是否存在任意键（用于判断文件夹是否存在）"""
        return next(iter(self.list(prefix, recursive=True, max_keys=1)), None) is not None


def iter_chunks(reader: BinaryIO, chunk_size: int) -> Iterator[bytes]:
    """按块读取对象数据，结束后关闭读取器"""
    try:
        while True:
            chunk = reader.read(chunk_size)
            if not chunk:
                break
            yield chunk
    finally:
        reader.close()
