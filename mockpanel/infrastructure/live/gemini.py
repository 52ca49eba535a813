"""
Gemini Live adapter for the live speech provider boundary.
"""
import asyncio
import logging
from typing import Optional

from google import genai
from google.genai import types
from google.oauth2 import service_account

from .provider import LiveMessage, MessageHandler, TranscriptionFlags
from ..audio.processing.processing import pcm_mime_type
from ...config import LIVE_MODEL_NAME, VERTEX_LOCATION, INPUT_SAMPLE_RATE, Config
from ...interview.errors import SessionHandshakeError

logger = logging.getLogger("gemini_live")

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"


def translate_response(response) -> list:
    """Flatten one Gemini server message into LiveMessages (one per audio part)."""
    content = getattr(response, "server_content", None)
    if content is None:
        return []

    messages = []
    if getattr(content, "interrupted", False):
        messages.append(LiveMessage(interrupted=True))

    output = getattr(content, "output_transcription", None)
    if output is not None and getattr(output, "text", None):
        messages.append(LiveMessage(text_delta=output.text))

    heard = getattr(content, "input_transcription", None)
    if heard is not None and getattr(heard, "text", None):
        messages.append(LiveMessage(input_text_delta=heard.text))

    model_turn = getattr(content, "model_turn", None)
    if model_turn is not None:
        for part in model_turn.parts or []:
            inline = getattr(part, "inline_data", None)
            if inline is not None and inline.data:
                messages.append(LiveMessage(audio_chunk=inline.data))

    if getattr(content, "turn_complete", False):
        messages.append(LiveMessage(turn_complete=True))
    return messages


class GeminiLiveConnection:
    """An open Gemini Live session with its receive loop."""

    def __init__(self, client: genai.Client, model: str, config: types.LiveConnectConfig,
                 on_message: MessageHandler, input_sample_rate: int = INPUT_SAMPLE_RATE):
        self.client = client
        self.model = model
        self.config = config
        self.on_message = on_message
        self.input_mime_type = pcm_mime_type(input_sample_rate)
        self.session = None
        self._session_context = None
        self._receive_task: Optional[asyncio.Task] = None
        self._closed = False

    async def start(self) -> None:
        self._session_context = self.client.aio.live.connect(model=self.model, config=self.config)
        self.session = await self._session_context.__aenter__()
        self._receive_task = asyncio.create_task(self._receive_loop())

    async def _receive_loop(self) -> None:
        try:
            while not self._closed:
                # receive() ends at each turn boundary
                async for response in self.session.receive():
                    if self._closed:
                        return
                    for message in translate_response(response):
                        try:
                            self.on_message(message)
                        except Exception as e:
                            logger.error(f"Error handling live message: {e}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if not self._closed:
                logger.error(f"Receive loop failed: {e}")

    async def send_realtime_input(self, media: bytes) -> None:
        if self.session is None or self._closed:
            return
        await self.session.send_realtime_input(
            media=types.Blob(data=media, mime_type=self.input_mime_type)
        )

    async def send_text(self, text: str) -> None:
        if self.session is None or self._closed:
            return
        await self.session.send_client_content(
            turns=types.Content(role="user", parts=[types.Part(text=text)]),
            turn_complete=True,
        )

    async def close(self) -> None:
        self._closed = True
        if self._receive_task is not None:
            self._receive_task.cancel()
            try:
                await self._receive_task
            except asyncio.CancelledError:
                pass
            self._receive_task = None
        if self._session_context is not None:
            context, self._session_context = self._session_context, None
            self.session = None
            await context.__aexit__(None, None, None)


class GeminiLiveProvider:
    """Opens Gemini Live sessions, one per persona activation."""

    def __init__(self,
                 api_key: Optional[str] = None,
                 project: Optional[str] = None,
                 location: str = VERTEX_LOCATION,
                 credentials_json: Optional[str] = None,
                 model: str = LIVE_MODEL_NAME,
                 input_sample_rate: int = INPUT_SAMPLE_RATE):
        self.model = model
        self.input_sample_rate = input_sample_rate

        if project:
            credentials = None
            if credentials_json:
                credentials = service_account.Credentials.from_service_account_file(
                    credentials_json, scopes=[CLOUD_PLATFORM_SCOPE]
                )
            self.client = genai.Client(vertexai=True, project=project, location=location,
                                       credentials=credentials)
        elif api_key:
            self.client = genai.Client(api_key=api_key)
        else:
            raise ValueError("Either api_key or project must be provided")

    @classmethod
    def from_config(cls, config: Config) -> 'GeminiLiveProvider':
        config.require_live_credentials()
        return cls(
            api_key=config.gemini_api_key,
            project=config.google_cloud_project,
            location=config.vertex_location,
            credentials_json=config.google_application_credentials,
            model=config.live_model_name,
        )

    def build_config(self, voice: str, system_instruction: str,
                     transcription: TranscriptionFlags) -> types.LiveConnectConfig:
        return types.LiveConnectConfig(
            response_modalities=["AUDIO"],
            speech_config=types.SpeechConfig(
                voice_config=types.VoiceConfig(
                    prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=voice)
                )
            ),
            system_instruction=types.Content(parts=[types.Part(text=system_instruction)]),
            input_audio_transcription=types.AudioTranscriptionConfig() if transcription.input_audio else None,
            output_audio_transcription=types.AudioTranscriptionConfig() if transcription.output_audio else None,
        )

    async def connect(self,
                      voice: str,
                      system_instruction: str,
                      on_message: MessageHandler,
                      transcription: TranscriptionFlags = TranscriptionFlags()) -> GeminiLiveConnection:
        connection = GeminiLiveConnection(
            self.client, self.model,
            self.build_config(voice, system_instruction, transcription),
            on_message, self.input_sample_rate,
        )
        try:
            await connection.start()
        except Exception as e:
            raise SessionHandshakeError(f"Gemini Live connect failed: {e}")
        return connection
