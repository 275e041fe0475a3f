from __future__ import annotations

import asyncio
import base64
import io
import json
import logging
import urllib.error
import urllib.request
import wave
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from engine.config import SpeechConfig

logger = logging.getLogger(__name__)


class SpeechServiceError(RuntimeError):
	"""The speech service failed to return a playable clip."""


@dataclass(frozen=True)
class AudioClip:
	"""
	Opaque playable clip as returned by a speech service.
	"""

	data: bytes
	mime_type: str = "audio/wav"
	duration_s: Optional[float] = None
	text: str = ""

	def to_data_uri(self) -> str:
		return f"data:{self.mime_type};base64," + base64.b64encode(self.data).decode("ascii")


def pcm_to_wav(pcm: bytes, channels: int = 1, sample_rate: int = 24000, sample_width: int = 2) -> bytes:
	"""Wrap raw little-endian PCM into a WAV container."""
	buf = io.BytesIO()
	with wave.open(buf, "wb") as w:
		w.setnchannels(int(channels))
		w.setsampwidth(int(sample_width))
		w.setframerate(int(sample_rate))
		w.writeframes(pcm)
	return buf.getvalue()


def wav_duration_s(data: bytes) -> Optional[float]:
	try:
		with wave.open(io.BytesIO(data), "rb") as w:
			rate = w.getframerate()
			return w.getnframes() / float(rate) if rate > 0 else None
	except (wave.Error, EOFError):
		return None


def _parse_data_uri(uri: str) -> Tuple[str, bytes]:
	if not uri.startswith("data:") or "," not in uri:
		raise SpeechServiceError("speech response is not a data URI")
	header, payload = uri[5:].split(",", 1)
	mime = header.split(";", 1)[0] or "application/octet-stream"
	try:
		return mime, base64.b64decode(payload)
	except ValueError as e:
		raise SpeechServiceError("speech response has invalid base64 payload") from e


class SpeechService(ABC):
	"""
	Adapter interface for the external text-to-speech service.

	Implementations return an AudioClip or raise; the dispatcher treats any
	exception as "drop this string".
	"""

	@abstractmethod
	def name(self) -> str: ...

	@abstractmethod
	async def synthesize(self, text: str) -> AudioClip: ...


class HttpSpeechService(SpeechService):
	"""
	Speech service reached over HTTP.

	POSTs {"text": ..., "voice": ...} as JSON to `config.url`. Accepted responses:
	- audio/wav or audio/mpeg bodies, used as-is;
	- raw PCM (audio/l16, audio/pcm, application/octet-stream), wrapped into WAV;
	- JSON {"audioDataUri": "data:audio/wav;base64,..."} (or "audio_data_uri").
	"""

	def __init__(self, config: SpeechConfig) -> None:
		if not config.url:
			raise ValueError("speech.url is not configured")
		self._cfg = config

	def name(self) -> str:
		return "http"

	async def synthesize(self, text: str) -> AudioClip:
		loop = asyncio.get_running_loop()
		mime, body = await loop.run_in_executor(None, self._post, text)
		return self._to_clip(text, mime, body)

	def _post(self, text: str) -> Tuple[str, bytes]:
		payload = json.dumps({"text": text, "voice": self._cfg.voice}).encode("utf-8")
		req = urllib.request.Request(
			self._cfg.url,
			data=payload,
			headers={"Content-Type": "application/json"},
			method="POST",
		)
		kwargs: Dict[str, Any] = {}
		if self._cfg.timeout_seconds > 0:
			kwargs["timeout"] = float(self._cfg.timeout_seconds)
		try:
			with urllib.request.urlopen(req, **kwargs) as resp:
				mime = (resp.headers.get("Content-Type") or "application/octet-stream").split(";", 1)[0].strip().lower()
				return mime, resp.read()
		except urllib.error.HTTPError as e:
			raise SpeechServiceError(f"speech service returned HTTP {e.code}") from e
		except (urllib.error.URLError, OSError) as e:
			raise SpeechServiceError(f"speech service unreachable: {e!r}") from e

	def _to_clip(self, text: str, mime: str, body: bytes) -> AudioClip:
		if not body:
			raise SpeechServiceError("speech service returned an empty body")

		if mime == "application/json":
			try:
				obj = json.loads(body.decode("utf-8"))
			except ValueError as e:
				raise SpeechServiceError("speech service returned malformed JSON") from e
			uri = (obj.get("audioDataUri") or obj.get("audio_data_uri")) if isinstance(obj, dict) else None
			if not isinstance(uri, str):
				raise SpeechServiceError("speech service JSON has no audio data URI")
			mime, body = _parse_data_uri(uri)

		if mime in ("audio/l16", "audio/pcm", "application/octet-stream"):
			body = pcm_to_wav(
				body,
				channels=self._cfg.channels,
				sample_rate=self._cfg.sample_rate,
				sample_width=self._cfg.sample_width,
			)
			mime = "audio/wav"

		duration = wav_duration_s(body) if mime in ("audio/wav", "audio/x-wav", "audio/wave") else None
		return AudioClip(data=body, mime_type=mime, duration_s=duration, text=text)
