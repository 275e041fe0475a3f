from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional

from engine.audio.speech import AudioClip
from engine.config import AudioConfig

logger = logging.getLogger(__name__)


class AudioPlayer(ABC):
	"""
	Plays one clip at a time. `play` returns once playback has finished (or
	failed); the dispatcher never calls it concurrently.
	"""

	@abstractmethod
	async def play(self, clip: AudioClip) -> None: ...


class WebSocketAudioPlayer(AudioPlayer):
	"""
	Plays clips on the connected browser client.

	Sends {"type": "audio", "seq": n, "data_uri": ..., "text": ...} and waits
	until the client echoes {"type": "audio_ended", "seq": n} (routed to
	`notify_ended`). Acks for any other seq, including late ones for a clip that
	already timed out, are ignored. If the client never answers, playback is
	considered over after the clip duration plus a grace period, so one lost ack
	cannot stall the queue.
	"""

	def __init__(
		self,
		send_json: Callable[[Dict[str, Any]], Awaitable[None]],
		config: Optional[AudioConfig] = None,
	) -> None:
		self._send_json = send_json
		self._cfg = config or AudioConfig()
		self._seq: int = 0
		self._ended: Optional[asyncio.Event] = None

	@property
	def current_seq(self) -> Optional[int]:
		"""Sequence id of the clip being played, or None when idle."""
		return self._seq if self._ended is not None else None

	def notify_ended(self, seq: Any = None) -> bool:
		"""Returns True when the ack matched the clip being played."""
		if self._ended is None or seq is None:
			return False
		try:
			matches = int(seq) == self._seq
		except (TypeError, ValueError):
			return False
		if not matches:
			logger.debug("[Audio] Ignoring audio_ended for seq %r (playing %d)", seq, self._seq)
			return False
		self._ended.set()
		return True

	def _wait_seconds(self, clip: AudioClip) -> float:
		if clip.duration_s is not None and clip.duration_s > 0:
			return float(clip.duration_s) + float(self._cfg.ack_grace_seconds)
		return float(self._cfg.default_clip_seconds)

	async def play(self, clip: AudioClip) -> None:
		self._seq += 1
		seq = self._seq
		self._ended = asyncio.Event()
		try:
			await self._send_json({"type": "audio", "seq": seq, "data_uri": clip.to_data_uri(), "text": clip.text})
			try:
				await asyncio.wait_for(self._ended.wait(), timeout=self._wait_seconds(clip))
			except asyncio.TimeoutError:
				logger.info("[Audio] No audio_ended from client for %r; continuing", clip.text)
		finally:
			self._ended = None
