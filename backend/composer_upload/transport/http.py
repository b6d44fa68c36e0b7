"""Plain multipart transport over httpx.

POSTs each file to ``{base_url}{endpoint}?client_id=...`` with the file meta
as form fields, one request per file. There is no retry, no chunking and no
authentication here; the host configures the endpoint.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from ..exceptions import TransferFailure
from ..files import UploadFile
from .base import BaseTransport, TransferResponse

logger = logging.getLogger(__name__)


def _form_value(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    return None


class HttpTransport(BaseTransport):
    def __init__(
        self,
        endpoint: str = "/uploads.json",
        *,
        base_url: str = "",
        client_id: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        debug_timings: bool = False,
    ) -> None:
        super().__init__(debug_timings=debug_timings)
        self.endpoint = endpoint
        self.client_id = client_id
        self._client = client or httpx.AsyncClient(base_url=base_url)
        self._owns_client = client is None
        self._closing: Optional[asyncio.Task] = None

    def _form_fields(self, file: UploadFile) -> Dict[str, str]:
        fields = {"name": file.name, "type": file.type}
        for key, value in file.meta.items():
            encoded = _form_value(value)
            if encoded is not None:
                fields[key] = encoded
        return fields

    async def _send(self, file: UploadFile) -> TransferResponse:
        params = {"client_id": self.client_id} if self.client_id else None
        self._report_progress(file, 0, file.size)

        response = await self._client.post(
            self.endpoint,
            params=params,
            data=self._form_fields(file),
            files={"file": (file.name, file.data, file.type)},
        )
        body = self._decode(response)

        if response.is_error:
            raise TransferFailure(
                f"Upload of {file.name} failed with HTTP {response.status_code}",
                status_code=response.status_code,
                body=body,
            )

        self._report_progress(file, file.size, file.size)
        return TransferResponse(status=response.status_code, body=body)

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return {"errors": [response.text]} if response.text else {}

    def destroy(self) -> None:
        super().destroy()
        if not self._owns_client or self._client.is_closed or self._closing is not None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop; leaving httpx client for garbage collection")
            return
        self._closing = loop.create_task(self._client.aclose())

    async def aclose(self) -> None:
        self.destroy()
        if self._closing is not None:
            await self._closing
        elif self._owns_client and not self._client.is_closed:
            await self._client.aclose()
