"""HTTP transfer of one file or file slice"""

import asyncio
from typing import Dict, Optional
import logging

import aiohttp

from ..events import EventEmitter

logger = logging.getLogger(__name__)


class ChunkUploader(EventEmitter):
    """
    Sends one blob in a single HTTP request
    Emits progress(processed, total), then exactly one of done(result)
    or failed(result); never raises for network or server errors
    """

    def __init__(self, blob, options,
                 session: Optional[aiohttp.ClientSession] = None,
                 timeout: Optional[aiohttp.ClientTimeout] = None):
        super().__init__()
        self.blob = blob
        self.options = options
        self.session = session
        self.timeout = timeout
        self.destroyed = False

    async def run(self):
        if self.destroyed:
            return

        if not self.options.url:
            self.trigger('failed', self._result(0, "No upload url configured"))
            return

        try:
            if self.session is not None:
                result = await self._send(self.session)
            else:
                async with aiohttp.ClientSession(timeout=self.timeout) as session:
                    result = await self._send(session)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Request to {self.options.url} failed: {e!r}")
            self.trigger('failed', self._result(0, str(e) or type(e).__name__))
            return
        except OSError as e:
            logger.error(f"Could not read {self.blob.name}: {e!r}")
            self.trigger('failed', self._result(0, str(e) or type(e).__name__))
            return

        if 200 <= result['status'] < 300:
            self.trigger('done', result)
        else:
            logger.warning(f"Server answered {result['status']} for {self.blob.name}")
            self.trigger('failed', result)

    async def _send(self, session: aiohttp.ClientSession) -> Dict:
        options = self.options
        headers = dict(options.headers or {})
        params = {k: str(v) for k, v in options.params.items()}
        total = self.blob.size

        if options.multipart:
            form = aiohttp.FormData()
            for key, value in params.items():
                form.add_field(key, value)
            form.add_field(
                options.file_data_name,
                await self.blob.read(),
                filename=self.blob.name,
                content_type=self.blob.type
            )
            request = session.request(
                options.http_method, options.url, data=form, headers=headers
            )
        else:
            headers.setdefault('Content-Type', self.blob.type)
            request = session.request(
                options.http_method, options.url, params=params,
                data=self._stream(total), headers=headers
            )

        async with request as response:
            body = await response.text()
            if options.multipart:
                self.trigger('progress', total, total)
            return self._result(response.status, body, dict(response.headers))

    async def _stream(self, total: int):
        processed = 0
        async for piece in self.blob.iter_pieces():
            yield piece
            processed += len(piece)
            self.trigger('progress', processed, total)

    @staticmethod
    def _result(status: int, response: str, headers: Optional[Dict] = None) -> Dict:
        return {
            'status': status,
            'response': response,
            'response_headers': headers or {}
        }

    def destroy(self):
        self.destroyed = True
        self.unbind()
