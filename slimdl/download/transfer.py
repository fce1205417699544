"""
传输组件

调度线程通过 Transfer 约定执行单个请求：同步运行到结束，
期间按块检查请求的取消标志，观察到取消时抛出 DownloadCancelledError，
失败时抛出 DownloadError 子类。finish 由调度线程负责调用，传输组件不调用。
"""

import asyncio
import os
from typing import Callable, Optional
from urllib.parse import unquote

import aiofiles
import aiohttp
from loguru import logger

from slimdl.download.request import DownloadRequest
from slimdl.download.verifier import FileVerifier
from slimdl.exceptions import (
    DownloadCancelledError,
    DownloadChecksumError,
    DownloadFileError,
    DownloadNetworkError,
)

Transfer = Callable[[DownloadRequest], None]


class HttpTransfer:
    """基于 aiohttp 的默认传输组件，每次调用在当前调度线程内运行一个事件循环"""

    def __init__(
        self,
        download_dir: str = ".",
        chunk_size: int = 8192,
        timeout: Optional[float] = None,
        verifier: Optional[FileVerifier] = None,
    ):
        self.download_dir = download_dir
        self.chunk_size = chunk_size
        self.timeout = timeout
        self.verifier = verifier or FileVerifier()

    def __call__(self, request: DownloadRequest) -> None:
        asyncio.run(self.download(request))

    def target_path(self, request: DownloadRequest) -> str:
        """请求的目标文件路径"""
        if request.destination:
            return request.destination
        return os.path.join(self.download_dir, request.filename)

    async def download(self, request: DownloadRequest) -> None:
        """下载单个请求"""
        self._check_cancelled(request)
        file_path = self.target_path(request)
        os.makedirs(os.path.dirname(file_path) or ".", exist_ok=True)

        # 检查文件是否已存在且校验通过
        if request.sha1 and await self.verifier.is_valid(file_path, request.sha1):
            logger.info(f"[跳过] '{request.filename}' 已存在且校验通过")
            return

        try:
            if request.url.startswith("file://"):
                await self._copy_local_file(request, unquote(request.url[7:]), file_path)
            else:
                await self._fetch(request, file_path)

            if not await self.verifier.verify(file_path, request.sha1):
                raise DownloadChecksumError(
                    f"SHA1 校验失败: {request.filename}",
                    context={"file": request.filename, "expected": request.sha1},
                )
        except Exception:
            # 清理不完整的文件
            if os.path.exists(file_path):
                try:
                    os.remove(file_path)
                except OSError:
                    pass
            raise

    async def _fetch(self, request: DownloadRequest, file_path: str) -> None:
        session_kwargs = {}
        if self.timeout:
            session_kwargs["timeout"] = aiohttp.ClientTimeout(total=self.timeout)

        try:
            async with aiohttp.ClientSession(**session_kwargs) as session:
                async with session.get(request.url) as response:
                    if response.status != 200:
                        raise DownloadNetworkError(
                            f"HTTP {response.status}",
                            context={"url": request.url, "status": response.status},
                        )

                    total = int(response.headers.get("Content-Length", 0))
                    async with aiofiles.open(file_path, "wb") as f:
                        downloaded = 0
                        async for chunk in response.content.iter_chunked(self.chunk_size):
                            self._check_cancelled(request)
                            await f.write(chunk)
                            downloaded += len(chunk)
                            self._report_progress(request, downloaded, total)
        except aiohttp.ClientError as e:
            raise DownloadNetworkError(
                f"网络错误: {e}", context={"url": request.url}
            ) from e
        except asyncio.TimeoutError as e:
            raise DownloadNetworkError(
                "下载超时", context={"url": request.url, "timeout": self.timeout}
            ) from e
        except OSError as e:
            raise DownloadFileError(
                f"写入文件失败: {e}", context={"file": file_path}
            ) from e

    async def _copy_local_file(
        self, request: DownloadRequest, src_path: str, dest_path: str
    ) -> None:
        """复制本地文件"""
        if not os.path.isfile(src_path):
            raise DownloadFileError(
                f"本地文件不存在: {src_path}", context={"url": request.url}
            )

        logger.info(f"[复制] 本地文件: {os.path.basename(src_path)}")
        total = self.verifier.get_size(src_path)
        try:
            async with aiofiles.open(src_path, "rb") as src, aiofiles.open(
                dest_path, "wb"
            ) as dest:
                copied = 0
                while True:
                    self._check_cancelled(request)
                    chunk = await src.read(self.chunk_size)
                    if not chunk:
                        break
                    await dest.write(chunk)
                    copied += len(chunk)
                    self._report_progress(request, copied, total)
        except OSError as e:
            raise DownloadFileError(
                f"复制文件失败: {e}", context={"src": src_path, "dest": dest_path}
            ) from e

    @staticmethod
    def _check_cancelled(request: DownloadRequest) -> None:
        if request.is_cancelled:
            raise DownloadCancelledError(
                "下载已取消", context={"download_id": request.download_id}
            )

    @staticmethod
    def _report_progress(request: DownloadRequest, downloaded: int, total: int) -> None:
        callback = getattr(request.listener, "on_progress", None)
        if callback is None:
            return
        try:
            callback(request, downloaded, total)
        except Exception:
            logger.exception(f"[进度] #{request.download_id} 回调执行失败")
