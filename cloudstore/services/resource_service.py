import io
import re
from dataclasses import dataclass
from typing import BinaryIO, Iterator, List, Optional

from loguru import logger

from cloudstore.core.config import settings
from cloudstore.core.exceptions import (AlreadyExistsException,
                                        CloudStoreException,
                                        InvalidArgumentException,
                                        InvalidPathException,
                                        NotFoundException,
                                        ParentNotFoundException,
                                        SameResourceException,
                                        StorageIOException,
                                        TypeMismatchException)
from cloudstore.schemas.resource import (DirectoryResource, FileResource,
                                         Resource)
from cloudstore.services.archive_service import ArchiveService
from cloudstore.storage.base import (FOLDER_CONTENT_TYPE, ObjectNotFoundError,
                                     ObjectStore, iter_chunks)
from cloudstore.utils import paths

_SEARCH_QUERY_PATTERN = re.compile(r"[\w .\-]+")


@dataclass
class DownloadStream:
    """
    下载结果：文件名、媒体类型和字节迭代器
    """

    filename: str
    media_type: str
    body: Iterator[bytes]


def to_resource(key: str, size: int = 0) -> Resource:
    """
    把对象键映射为资源：以 "/" 结尾为文件夹，否则为文件
    """
    parent = paths.parent(key) or ""
    name = paths.basename(key)
    if key.endswith("/"):
        return DirectoryResource(path=parent, name=name)
    return FileResource(path=parent, name=name, size=size)


class ResourceService:
    """
    租户命名空间内的文件与文件夹操作

    所有方法第一个参数为租户ID，路径为相对租户根目录的用户路径；
    对象存储调用均为阻塞调用，由路由在线程池中执行
    """

    def __init__(self, store: ObjectStore, archive_service: Optional[ArchiveService] = None):
        self.store = store
        self.archive_service = archive_service or ArchiveService(store)

    # ------------------------------------------------------------------
    # 内部工具
    # ------------------------------------------------------------------

    def ensure_root(self, tenant_id: int) -> str:
        """保证租户根目录标记存在，返回根前缀"""
        root = paths.root_prefix(tenant_id)
        if not self.store.prefix_exists(root):
            self._put_marker(tenant_id, root)
            logger.info(f"已创建用户根目录: {root}")
        return root

    def _key(self, tenant_id: int, path: Optional[str], validate: bool = True) -> str:
        key = paths.resolve(tenant_id, path)
        if validate:
            paths.validate(key)
        return paths.ensure_owned(tenant_id, key)

    def _put_marker(self, tenant_id: int, key: str) -> None:
        paths.ensure_owned(tenant_id, key)
        self.store.put(key, io.BytesIO(b""), 0, FOLDER_CONTENT_TYPE)

    def _folder_exists(self, tenant_id: int, key: str) -> bool:
        return self.store.prefix_exists(paths.ensure_owned(tenant_id, key))

    def _file_exists(self, tenant_id: int, key: str) -> bool:
        return self.store.exists(paths.ensure_owned(tenant_id, key))

    def _exists(self, tenant_id: int, key: str) -> bool:
        if key.endswith("/"):
            return self._folder_exists(tenant_id, key)
        return self._file_exists(tenant_id, key)

    def _ensure_parent(self, tenant_id: int, key: str) -> None:
        parent = paths.parent(key)
        if parent is None or parent == paths.root_prefix(tenant_id):
            return
        if not self._folder_exists(tenant_id, parent):
            raise ParentNotFoundException(f"父文件夹不存在: {parent}")

    def _materialise_ancestors(self, tenant_id: int, key: str) -> None:
        """为路径上缺失的文件夹补建标记"""
        for folder in paths.ancestors(key):
            if folder == key:
                continue
            if not self._folder_exists(tenant_id, folder):
                self._put_marker(tenant_id, folder)

    def _restore_marker(self, tenant_id: int, folder: Optional[str]) -> None:
        if folder and not self._file_exists(tenant_id, folder):
            self._put_marker(tenant_id, folder)

    # ------------------------------------------------------------------
    # 资源操作
    # ------------------------------------------------------------------

    def get_info(self, tenant_id: int, path: Optional[str]) -> Resource:
        """
        获取资源信息

        父文件夹不存在时优先报 ParentNotFound
        """
        root = self.ensure_root(tenant_id)
        key = self._key(tenant_id, path)
        if key != root:
            self._ensure_parent(tenant_id, key)

        if key.endswith("/"):
            if key != root and not self._folder_exists(tenant_id, key):
                raise NotFoundException(f"文件夹不存在: {key}")
            return to_resource(key)

        try:
            stat = self.store.stat(key)
        except ObjectNotFoundError as e:
            raise NotFoundException(f"文件不存在: {key}") from e
        return to_resource(key, stat.size)

    def create_folder(self, tenant_id: int, path: Optional[str]) -> DirectoryResource:
        """
        创建空文件夹，不会自动创建中间文件夹
        """
        root = self.ensure_root(tenant_id)
        key = paths.resolve(tenant_id, path)
        if not paths.is_folder_path(key):
            raise InvalidPathException(f"无效的文件夹路径: {key}")
        paths.validate_folder(key)
        paths.ensure_owned(tenant_id, key)

        if key == root:
            raise AlreadyExistsException("根目录已存在")
        self._ensure_parent(tenant_id, key)
        if self._folder_exists(tenant_id, key):
            raise AlreadyExistsException(f"文件夹已存在: {key}")

        self._put_marker(tenant_id, key)
        logger.info(f"创建文件夹: {key}")
        return to_resource(key)

    def delete(self, tenant_id: int, path: Optional[str]) -> None:
        """
        删除文件或文件夹（递归）

        文件夹删除不是原子操作，部分失败时报存储错误，可重试
        """
        root = self.ensure_root(tenant_id)
        key = self._key(tenant_id, path)
        if key == root:
            raise InvalidArgumentException("不能删除根目录")

        if not key.endswith("/"):
            if not self._file_exists(tenant_id, key):
                raise NotFoundException(f"文件不存在: {key}")
            self.store.remove(key)
            logger.info(f"删除文件: {key}")
            return

        keys = [item.key for item in self.store.list(key, recursive=True)]
        if not keys:
            raise NotFoundException(f"文件夹不存在: {key}")

        failed = []
        for object_key in keys:
            try:
                self.store.remove(paths.ensure_owned(tenant_id, object_key))
            except StorageIOException as e:
                logger.error(f"删除对象失败: {object_key}, 错误: {e.detail}")
                failed.append(object_key)

        if failed:
            raise StorageIOException(f"文件夹删除未完成，{len(failed)} 个对象删除失败: {key}")
        logger.info(f"删除文件夹: {key}，共 {len(keys)} 个对象")

    def list_directory(self, tenant_id: int, path: Optional[str]) -> List[Resource]:
        """
        列出文件夹的直接子项，跳过文件夹自身标记
        """
        root = self.ensure_root(tenant_id)
        key = paths.resolve(tenant_id, path)
        if not paths.is_folder_path(key):
            raise InvalidPathException(f"路径不是文件夹: {key}")
        paths.validate_folder(key)
        paths.ensure_owned(tenant_id, key)

        if key != root and not self._folder_exists(tenant_id, key):
            raise NotFoundException(f"文件夹不存在: {key}")

        return [
            to_resource(item.key, item.size)
            for item in self.store.list(key, delimiter="/")
            if item.key != key
        ]

    def upload(
        self,
        tenant_id: int,
        path: Optional[str],
        filename: Optional[str],
        reader: BinaryIO,
        size: int,
        content_type: Optional[str] = None,
    ) -> FileResource:
        """
        上传文件到指定文件夹

        参数:
            tenant_id: 租户ID
            path: 目标文件夹
            filename: 上传文件的原始名称，只取最后一段
            reader: 文件数据流
            size: 文件大小
            content_type: 客户端声明的MIME类型，原样保存
        """
        self.ensure_root(tenant_id)
        folder_key = paths.resolve(tenant_id, path)
        if not paths.is_folder_path(folder_key):
            raise InvalidPathException(f"上传目标必须是文件夹: {folder_key}")

        name = paths.basename((filename or "").replace("\\", "/")).strip()
        if not name:
            raise InvalidArgumentException("上传文件缺少文件名")

        key = folder_key + name
        paths.validate_file(key)
        paths.ensure_owned(tenant_id, key)

        if self._file_exists(tenant_id, key):
            raise AlreadyExistsException(f"文件已存在: {key}")

        self._materialise_ancestors(tenant_id, key)
        self.store.put(key, reader, size, content_type)
        logger.info(f"上传文件: {key}, 大小: {size}")
        return FileResource(path=folder_key, name=name, size=size)

    def download(self, tenant_id: int, path: Optional[str]) -> DownloadStream:
        """
        下载文件或文件夹（ZIP）

        存在性检查在返回响应体之前完成
        """
        root = self.ensure_root(tenant_id)
        key = self._key(tenant_id, path)

        if key.endswith("/"):
            if key != root and not self._folder_exists(tenant_id, key):
                raise NotFoundException(f"文件夹不存在: {key}")
            return DownloadStream(
                filename=f"{paths.basename(key)}.zip",
                media_type="application/zip",
                body=self.archive_service.stream(key),
            )

        try:
            reader = self.store.get(key)
        except ObjectNotFoundError as e:
            raise NotFoundException(f"文件不存在: {key}") from e
        return DownloadStream(
            filename=paths.basename(key),
            media_type="application/octet-stream",
            body=iter_chunks(reader, settings.STORAGE_CHUNK_SIZE),
        )

    def move(self, tenant_id: int, source: Optional[str], target: Optional[str]) -> Resource:
        """
        移动或重命名资源

        文件：复制后删除源对象，并保留源文件夹可见
        文件夹：逐个对象复制+删除，非原子操作，中途失败报存储错误
        """
        root = self.ensure_root(tenant_id)
        src_key = self._key(tenant_id, source, validate=False)
        dst_key = self._key(tenant_id, target, validate=False)

        if src_key == dst_key:
            raise SameResourceException()
        if not paths.same_type(src_key, dst_key):
            raise TypeMismatchException()
        paths.validate(src_key)
        paths.validate(dst_key)
        if src_key == root:
            raise InvalidArgumentException("不能移动根目录")

        is_folder = src_key.endswith("/")
        if is_folder and paths.is_within(src_key, dst_key):
            raise InvalidArgumentException("不能把文件夹移动到其自身内部")
        if not self._exists(tenant_id, src_key):
            raise NotFoundException(f"资源不存在: {src_key}")
        if self._exists(tenant_id, dst_key):
            raise AlreadyExistsException(f"目标已存在: {dst_key}")

        src_parent = paths.parent(src_key)
        self._materialise_ancestors(tenant_id, dst_key)

        if not is_folder:
            size = self.store.stat(src_key).size
            self.store.copy(src_key, dst_key)
            self.store.remove(src_key)
            self._restore_marker(tenant_id, src_parent)
            logger.info(f"移动文件: {src_key} -> {dst_key}")
            return to_resource(dst_key, size)

        moved = 0
        for item in self.store.list(src_key, recursive=True):
            new_key = paths.ensure_owned(tenant_id, dst_key + item.key[len(src_key):])
            try:
                self.store.copy(item.key, new_key)
                self.store.remove(item.key)
            except CloudStoreException as e:
                logger.error(f"移动文件夹中断: {item.key} -> {new_key}, 已移动 {moved} 个对象")
                raise StorageIOException(f"移动文件夹未完成: {src_key}") from e
            moved += 1

        self._restore_marker(tenant_id, src_parent)
        logger.info(f"移动文件夹: {src_key} -> {dst_key}，共 {moved} 个对象")
        return to_resource(dst_key)

    def search(self, tenant_id: int, query: Optional[str]) -> List[Resource]:
        """
        按名称子串搜索（区分大小写），结果无序
        """
        if query is None or not query.strip():
            raise InvalidArgumentException("搜索关键字不能为空")
        if "/" in query or not query.strip(".") or not _SEARCH_QUERY_PATTERN.fullmatch(query):
            raise InvalidPathException(f"无效的搜索关键字: {query}")

        root = self.ensure_root(tenant_id)
        return [
            to_resource(item.key, item.size)
            for item in self.store.list(root, recursive=True)
            if item.key != root and query in paths.basename(item.key)
        ]
