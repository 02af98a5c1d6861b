import io
import threading
from typing import BinaryIO, Dict, Iterator, Optional, Tuple

from cloudstore.storage.base import (
    FOLDER_CONTENT_TYPE,
    ObjectItem,
    ObjectNotFoundError,
    ObjectStat,
    ObjectStore,
)


class InMemoryObjectStore(ObjectStore):
    """
    进程内对象存储，用于本地开发（STORAGE_BACKEND=memory）和测试

    列举语义与S3一致：非递归模式下，分隔符之后的部分折叠为公共前缀
    """

    def __init__(self):
        self._objects: Dict[str, Tuple[bytes, Optional[str]]] = {}
        self._lock = threading.Lock()

    @property
    def backend_name(self) -> str:
        return "memory"

    def bucket_ensure(self) -> None:
        return None

    def put(
        self,
        key: str,
        reader: BinaryIO,
        size: int,
        content_type: Optional[str] = None,
    ) -> None:
        data = reader.read() if size else b""
        if size == 0 and content_type is None:
            content_type = FOLDER_CONTENT_TYPE
        with self._lock:
            self._objects[key] = (data, content_type)

    def stat(self, key: str) -> ObjectStat:
        with self._lock:
            if key not in self._objects:
                raise ObjectNotFoundError(key)
            data, content_type = self._objects[key]
        return ObjectStat(key=key, size=len(data), content_type=content_type)

    def get(self, key: str) -> BinaryIO:
        with self._lock:
            if key not in self._objects:
                raise ObjectNotFoundError(key)
            data, _ = self._objects[key]
        return io.BytesIO(data)

    def list(
        self,
        prefix: str,
        delimiter: str = "/",
        recursive: bool = False,
        max_keys: Optional[int] = None,
    ) -> Iterator[ObjectItem]:
        with self._lock:
            snapshot = sorted(
                (key, len(data)) for key, (data, _) in self._objects.items() if key.startswith(prefix)
            )

        items = []
        seen_prefixes = set()
        for key, size in snapshot:
            if not recursive:
                index = key.find(delimiter, len(prefix))
                if index != -1:
                    common = key[: index + len(delimiter)]
                    if common not in seen_prefixes:
                        seen_prefixes.add(common)
                        items.append(ObjectItem(key=common, size=0, is_dir=True))
                    continue
            items.append(ObjectItem(key=key, size=size, is_dir=key.endswith("/")))

        if max_keys is not None:
            items = items[:max_keys]
        return iter(items)

    def copy(self, src: str, dst: str) -> None:
        with self._lock:
            if src not in self._objects:
                raise ObjectNotFoundError(src)
            self._objects[dst] = self._objects[src]

    def remove(self, key: str) -> None:
        with self._lock:
            self._objects.pop(key, None)
