from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import replace
from typing import Deque, Iterable, List, Optional, Set, Union

from engine.audio.player import AudioPlayer
from engine.audio.speech import AudioClip, SpeechService
from engine.pose.evaluator import FeedbackItem, FeedbackKind, FrameEvaluation

logger = logging.getLogger(__name__)

SPOKEN_KINDS = frozenset({FeedbackKind.LOW, FeedbackKind.HIGH, FeedbackKind.GUIDANCE})

FeedbackInput = Union[FrameEvaluation, Iterable[Union[str, FeedbackItem]]]


def is_affirming(text: str) -> bool:
	"""
	Text heuristic for feedback that only confirms correct form. Used for plain
	strings that carry no kind; case-sensitive on purpose.
	"""
	return "good" in text or "perfect" in text


def select_spoken(feedback: FeedbackInput) -> List[str]:
	"""Feedback entries worth narrating, in order."""
	entries = feedback.items if isinstance(feedback, FrameEvaluation) else feedback
	out: List[str] = []
	for entry in entries:
		if isinstance(entry, FeedbackItem):
			if entry.kind in SPOKEN_KINDS and entry.text:
				out.append(entry.text)
		elif entry and not is_affirming(entry):
			out.append(entry)
	return out


class FeedbackAudioDispatcher:
	"""
	Turns feedback into strictly sequential spoken audio.

	- submit() schedules one speech request per non-affirming entry and returns
	  immediately; the per-frame path never waits on the speech service.
	- Clips are queued in the order their requests complete and played one at a
	  time: Idle -> Playing on enqueue, Playing -> Playing while the queue has
	  more, Playing -> Idle once it is empty.
	- A failed request drops its string; queued playback is unaffected.
	- A text that is already being synthesized, queued or played is not
	  requested again.

	All state is touched only from the event loop that calls submit().
	"""

	def __init__(self, speech: Optional[SpeechService], player: AudioPlayer) -> None:
		self.speech = speech
		self.player = player
		self._queue: Deque[AudioClip] = deque()
		self._playing: bool = False
		self._current: Optional[AudioClip] = None
		self._requests: Set[asyncio.Task] = set()
		self._requested_texts: Set[str] = set()
		self._playback: Optional[asyncio.Task] = None

	@property
	def playing(self) -> bool:
		return self._playing

	@property
	def pending(self) -> int:
		return len(self._queue)

	@property
	def in_flight(self) -> int:
		return len(self._requests)

	def is_outstanding(self, text: str) -> bool:
		"""True while `text` is being synthesized, queued or played."""
		if text in self._requested_texts:
			return True
		if self._current is not None and self._current.text == text:
			return True
		return any(clip.text == text for clip in self._queue)

	def submit(self, feedback: FeedbackInput) -> List[str]:
		"""
		Request audio for the non-affirming entries of one frame's feedback.
		Returns the texts a request was scheduled for.
		"""
		return self.speak(select_spoken(feedback))

	def speak(self, texts: Iterable[str]) -> List[str]:
		"""
		Request audio for each text, skipping any that is already outstanding.
		Returns the texts a request was scheduled for.
		"""
		if self.speech is None:
			return []
		scheduled: List[str] = []
		for text in texts:
			if not text or text in scheduled or self.is_outstanding(text):
				continue
			self._requested_texts.add(text)
			task = asyncio.create_task(self._request(text))
			self._requests.add(task)
			task.add_done_callback(self._requests.discard)
			scheduled.append(text)
		return scheduled

	async def _request(self, text: str) -> None:
		try:
			clip = await self.speech.synthesize(text)
		except asyncio.CancelledError:
			raise
		except Exception as e:
			logger.warning("[Speech] Request failed for %r, dropping: %r", text, e)
			return
		finally:
			self._requested_texts.discard(text)
		if clip.text != text:
			clip = replace(clip, text=text)
		self.enqueue(clip)

	def enqueue(self, clip: AudioClip) -> None:
		self._queue.append(clip)
		if self._playing:
			return
		self._playing = True
		self._playback = asyncio.create_task(self._play_queue())

	async def _play_queue(self) -> None:
		try:
			while self._queue:
				clip = self._queue.popleft()
				self._current = clip
				try:
					await self.player.play(clip)
				except asyncio.CancelledError:
					raise
				except Exception as e:
					logger.warning("[Audio] Playback failed for %r: %r", clip.text, e)
				finally:
					self._current = None
		finally:
			self._playing = False

	async def drain(self) -> None:
		"""Wait until every outstanding request has resolved and the queue has played out."""
		while self._requests or (self._playback is not None and not self._playback.done()):
			if self._requests:
				await asyncio.gather(*list(self._requests), return_exceptions=True)
			if self._playback is not None and not self._playback.done():
				await asyncio.gather(self._playback, return_exceptions=True)

	async def close(self) -> None:
		"""Cancel outstanding requests and playback, and forget queued clips."""
		tasks = list(self._requests)
		if self._playback is not None and not self._playback.done():
			tasks.append(self._playback)
		for t in tasks:
			t.cancel()
		if tasks:
			await asyncio.gather(*tasks, return_exceptions=True)
		self._queue.clear()
		self._requested_texts.clear()
		self._current = None
		self._playing = False
