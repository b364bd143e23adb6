"""Remote slice transcription endpoint backend."""

import asyncio
import json
import logging
from typing import Optional

import aiohttp

from .base import AbstractTranscriptionBackend
from ..errors import PermanentServiceError, TransientServiceError, service_error_from_message
from ..models.transcription import TranscriptionRequest, TranscriptionResponse

logger = logging.getLogger(__name__)

FILE_EXTENSIONS = {
    "audio/wav": "wav",
    "audio/webm": "webm",
    "audio/ogg": "ogg",
}


class HttpTranscriptionBackend(AbstractTranscriptionBackend):
    """Posts each slice as multipart form data to a transcription endpoint."""

    def __init__(self,
                 endpoint_url: str,
                 api_key: Optional[str] = None,
                 timeout_seconds: float = 30.0,
                 language: str = "en-US"):
        """Initialize HTTP backend.

        Args:
            endpoint_url: URL accepting ``audio``, ``sliceIndex``, ``previousContext``
                and ``vocabulary`` form fields
            api_key: Optional bearer token
            timeout_seconds: Transport timeout for one request
        """
        super().__init__(language)
        self.endpoint_url = endpoint_url
        self.api_key = api_key
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.session: Optional[aiohttp.ClientSession] = None

    def initialize(self) -> bool:
        if not self.endpoint_url:
            raise ValueError("Transcription endpoint URL is required")
        logger.info(f"HTTP transcription backend targeting {self.endpoint_url}")
        return True

    def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else None
            self.session = aiohttp.ClientSession(timeout=self.timeout, headers=headers)
        return self.session

    def _build_form(self, request: TranscriptionRequest) -> aiohttp.FormData:
        extension = FILE_EXTENSIONS.get(request.mime_type, "bin")
        form = aiohttp.FormData()
        form.add_field(
            "audio",
            request.audio_data,
            filename=f"slice-{request.slice_index}.{extension}",
            content_type=request.mime_type,
        )
        form.add_field("sliceIndex", str(request.slice_index))
        if request.previous_context:
            form.add_field("previousContext", request.previous_context)
        if request.vocabulary:
            form.add_field("vocabulary", json.dumps(
                [{"word": entry.word, "context": entry.context} for entry in request.vocabulary]
            ))
        return form

    async def transcribe(self, request: TranscriptionRequest) -> TranscriptionResponse:
        logger.debug(f"Slice {request.slice_index}: posting {len(request.audio_data)} bytes "
                     f"with {len(request.previous_context or '')} context chars")
        session = self._get_session()
        try:
            async with session.post(self.endpoint_url, data=self._build_form(request)) as response:
                if response.status != 200:
                    raise service_error_from_message(
                        await self._error_message(response), status=response.status
                    )
                data = await response.json()
        except aiohttp.ContentTypeError as e:
            raise PermanentServiceError(f"Invalid response from transcription endpoint: {e}") from e
        except asyncio.TimeoutError as e:
            raise TransientServiceError(f"Transcription request timeout (slice={request.slice_index})") from e
        except aiohttp.ClientError as e:
            raise TransientServiceError(f"Network error (slice={request.slice_index}): {e}") from e

        if not data.get("success", True):
            raise service_error_from_message(data.get("error") or "Transcription failed")

        return TranscriptionResponse(
            success=True,
            text=data.get("text") or "",
            slice_index=int(data.get("sliceIndex", request.slice_index)),
            no_speech=bool(data.get("noSpeech", False)),
            duplicate=bool(data.get("duplicate", False)),
            model=data.get("model", ""),
            attempts=int(data.get("attempts", 1)),
        )

    async def _error_message(self, response: aiohttp.ClientResponse) -> str:
        try:
            payload = await response.json()
            detail = payload.get("details") or payload.get("error") or "Unknown error"
        except (aiohttp.ContentTypeError, ValueError):
            detail = (await response.text())[:200] or "Unknown error"
        return f"Transcription failed (HTTP {response.status}): {detail}"

    async def cleanup(self) -> None:
        if self.session is not None and not self.session.closed:
            await self.session.close()
        self.session = None
