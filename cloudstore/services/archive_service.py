import io
import time
import zipfile
from typing import Iterator, List, Optional

from loguru import logger

from cloudstore.core.config import settings
from cloudstore.core.exceptions import CloudStoreException
from cloudstore.storage.base import ObjectStore


class _ZipSink(io.RawIOBase):
    """
    只写、不可定位的输出缓冲

    zipfile 检测到 tell() 不可用时改用数据描述符写入，
    写出的字节在每个数据块后被取走并发送给客户端
    """

    def __init__(self):
        super().__init__()
        self._chunks: List[bytes] = []

    def writable(self) -> bool:
        return True

    def write(self, data) -> int:
        self._chunks.append(bytes(data))
        return len(data)

    def flush(self) -> None:
        return None

    def drain(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks.clear()
        return data


class ArchiveService:
    """
    把文件夹打包为ZIP流，不在内存或磁盘中生成完整压缩包
    """

    def __init__(self, store: ObjectStore, chunk_size: Optional[int] = None):
        self.store = store
        self.chunk_size = chunk_size or settings.STORAGE_CHUNK_SIZE

    def stream(self, folder_key: str) -> Iterator[bytes]:
        """
        生成文件夹的ZIP字节流

        参数:
            folder_key: 文件夹键，以 "/" 结尾

        说明:
            - 跳过文件夹自身标记以及所有子文件夹占位对象
            - 条目名为去掉文件夹前缀（及开头 "/"）后的相对键
            - 无法打开的对象记录日志并跳过；读取中途失败则截断该条目
        """
        sink = _ZipSink()
        with zipfile.ZipFile(sink, mode="w", compression=zipfile.ZIP_DEFLATED) as archive:
            for item in self.store.list(folder_key, recursive=True):
                if item.is_dir or item.key.endswith("/"):
                    continue
                entry_name = item.key[len(folder_key):].lstrip("/")
                if not entry_name:
                    continue

                try:
                    reader = self.store.get(item.key)
                except CloudStoreException as e:
                    logger.warning(f"打包时无法读取对象，已跳过: {item.key}, 错误: {e.detail}")
                    continue

                info = zipfile.ZipInfo(entry_name, date_time=time.localtime(time.time())[:6])
                info.compress_type = zipfile.ZIP_DEFLATED
                info.file_size = item.size
                try:
                    with archive.open(info, mode="w") as entry:
                        try:
                            while True:
                                chunk = reader.read(self.chunk_size)
                                if not chunk:
                                    break
                                entry.write(chunk)
                                data = sink.drain()
                                if data:
                                    yield data
                        except Exception as e:
                            logger.error(f"打包时读取对象中断，条目被截断: {item.key}, 错误: {str(e)}")
                finally:
                    reader.close()

                data = sink.drain()
                if data:
                    yield data

        # 中央目录在关闭时写出
        data = sink.drain()
        if data:
            yield data
