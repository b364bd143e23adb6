"""Per-slice recognition through Google Cloud Speech-to-Text."""

import asyncio
import functools
import logging
from typing import Optional

from google.api_core import exceptions as gax_exceptions
from google.cloud import speech
from google.oauth2 import service_account

from .base import AbstractTranscriptionBackend
from ..errors import PermanentServiceError, TransientServiceError, service_error_from_message
from ..models.transcription import TranscriptionRequest, TranscriptionResponse

logger = logging.getLogger(__name__)

MAX_PHRASE_HINTS = 100


class GoogleSpeechBackend(AbstractTranscriptionBackend):
    """Synchronous Google recognize calls, one per slice, run off the event loop."""

    def __init__(self,
                 credentials_path: Optional[str] = None,
                 language: str = "en-US",
                 use_enhanced: bool = True,
                 enable_automatic_punctuation: bool = True,
                 request_timeout: float = 10.0):
        """
        Args:
            credentials_path: Service-account JSON used to build the client
            language: BCP-47 language code
            use_enhanced: Request the enhanced recognition model
            enable_automatic_punctuation: Let the service punctuate
            request_timeout: Deadline for one recognize call, in seconds
        """
        super().__init__(language)
        self.credentials_path = credentials_path
        if not self.credentials_path:
            raise ValueError("A service-account credentials path is required")
        self.use_enhanced = use_enhanced
        self.enable_automatic_punctuation = enable_automatic_punctuation
        self.request_timeout = request_timeout
        self.client = None
        self.project_id = None
        self.model = "latest_short"

    def initialize(self) -> bool:
        """Build the client from the service-account file."""
        logger.info(f"Google credentials: {self.credentials_path}")
        credentials = service_account.Credentials.from_service_account_file(self.credentials_path)
        self.client = speech.SpeechClient(credentials=credentials)
        self.project_id = credentials.project_id
        logger.info(f"Google Speech client ready for project {self.project_id}")
        return True

    def _build_config(self, request: TranscriptionRequest) -> speech.RecognitionConfig:
        speech_contexts = []
        if request.vocabulary:
            phrases = [entry.word for entry in request.vocabulary[:MAX_PHRASE_HINTS]]
            speech_contexts.append(speech.SpeechContext(phrases=phrases))

        return speech.RecognitionConfig(
            encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
            sample_rate_hertz=request.sample_rate,
            language_code=self.language,
            use_enhanced=self.use_enhanced,
            enable_automatic_punctuation=self.enable_automatic_punctuation,
            speech_contexts=speech_contexts,
            model=self.model,
        )

    async def transcribe(self, request: TranscriptionRequest) -> TranscriptionResponse:
        """Transcribe a slice without blocking the event loop."""
        if self.client is None:
            raise PermanentServiceError("Google Speech backend is not initialized")

        logger.debug(f"Slice {request.slice_index}: {len(request.audio_data)} bytes; "
                     f"language={self.language}; phrase hints={len(request.vocabulary)}")

        audio = speech.RecognitionAudio(content=request.audio_data)
        recognize = functools.partial(
            self.client.recognize,
            config=self._build_config(request),
            audio=audio,
            timeout=self.request_timeout,
        )
        loop = asyncio.get_running_loop()
        try:
            response = await loop.run_in_executor(None, recognize)
        except (gax_exceptions.DeadlineExceeded, gax_exceptions.ServiceUnavailable,
                gax_exceptions.TooManyRequests) as e:
            logger.warning(f"Google STT transient failure for slice {request.slice_index}: {e}")
            raise TransientServiceError(
                f"Google Speech temporarily unavailable (slice={request.slice_index}): {e}"
            ) from e
        except gax_exceptions.GoogleAPICallError as e:
            logger.error(f"Google STT API call error for slice {request.slice_index}: {e}")
            raise service_error_from_message(
                f"Google Speech API error (slice={request.slice_index}): {e}"
            ) from e

        if not response.results:
            logger.debug(f"Slice {request.slice_index}: no speech detected")
            return TranscriptionResponse(
                success=True, text="", slice_index=request.slice_index,
                no_speech=True, model=self.model,
            )

        text = " ".join(
            result.alternatives[0].transcript.strip()
            for result in response.results
            if result.alternatives
        ).strip()
        return TranscriptionResponse(
            success=True, text=text, slice_index=request.slice_index,
            no_speech=not text, model=self.model,
        )

    async def cleanup(self) -> None:
        self.client = None
