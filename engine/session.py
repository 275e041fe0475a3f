from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from engine.audio.dispatcher import FeedbackAudioDispatcher, select_spoken
from engine.breathing import BreathingEstimator
from engine.config import AudioConfig
from engine.pose.evaluator import FrameEvaluation, PoseRuleEvaluator
from engine.pose.rules import PoseRuleSet
from engine.pose.types import PoseFrame


@dataclass(frozen=True)
class FrameResult:
	"""Plain values pushed to the UI after each frame."""

	feedback: List[str] = field(default_factory=list)
	accuracy: float = 0.0
	breathing_rate: Optional[float] = None
	pose_id: Optional[str] = None
	evaluation: Optional[FrameEvaluation] = None
	spoken: List[str] = field(default_factory=list)

	def to_message(self) -> Dict[str, Any]:
		return {
			"type": "evaluation",
			"pose_id": self.pose_id,
			"feedback": self.feedback,
			"kinds": [item.kind.value for item in self.evaluation.items] if self.evaluation else [],
			"accuracy": round(float(self.accuracy), 2),
			"breathing_rate": round(float(self.breathing_rate), 2) if self.breathing_rate is not None else None,
		}


class FeedbackSession:
	"""
	Per-client composition of the engine: one evaluator, one breathing window and
	one audio dispatcher.

	process_frame() runs synchronously on the event loop. Breathing is tracked
	whether or not a pose is selected; evaluation and narration only run while
	one is.

	Narration follows changes, not frames: a set of corrections is handed to the
	dispatcher once, after it has stayed the same for `settle_seconds` of frame
	time. Holding the same mistake does not repeat it; a different set (or the
	same one after it went away) is announced again.
	"""

	def __init__(
		self,
		evaluator: Optional[PoseRuleEvaluator] = None,
		breathing: Optional[BreathingEstimator] = None,
		dispatcher: Optional[FeedbackAudioDispatcher] = None,
		audio: Optional[AudioConfig] = None,
	) -> None:
		self.evaluator = evaluator or PoseRuleEvaluator()
		self.breathing = breathing or BreathingEstimator()
		self.dispatcher = dispatcher
		self.audio = audio or AudioConfig()
		self.pose_id: Optional[str] = None
		self.rules: Optional[PoseRuleSet] = None
		self.frames_processed: int = 0
		self._candidate: Tuple[str, ...] = ()
		self._candidate_since_ms: float = 0.0
		self._announced: bool = False

	def select_pose(self, pose_id: Optional[str], rules: Optional[PoseRuleSet]) -> None:
		"""Switch the active pose; pass None/None to clear it."""
		self.pose_id = pose_id
		self.rules = rules if pose_id is not None else None
		self._reset_narration()

	def _reset_narration(self) -> None:
		self._candidate = ()
		self._candidate_since_ms = 0.0
		self._announced = False

	def _narrate(self, evaluation: FrameEvaluation, ts: float) -> List[str]:
		texts = tuple(select_spoken(evaluation))
		if texts != self._candidate:
			self._candidate = texts
			self._candidate_since_ms = ts
			self._announced = False
		if not texts or self._announced or self.dispatcher is None:
			return []
		if ts - self._candidate_since_ms < self.audio.settle_seconds * 1000.0:
			return []
		self._announced = True
		return self.dispatcher.speak(texts)

	def process_frame(self, frame: PoseFrame, timestamp_ms: Optional[float] = None) -> FrameResult:
		ts = timestamp_ms
		if ts is None:
			ts = frame.timestamp_ms if frame.timestamp_ms is not None else time.time() * 1000.0
		self.frames_processed += 1

		rate = self.breathing.add_sample(frame, ts)
		if rate is None:
			rate = self.breathing.rate_at(ts)

		if len(frame) == 0 or self.pose_id is None:
			# No person detected, or nothing to check against.
			self._reset_narration()
			return FrameResult(breathing_rate=rate, pose_id=self.pose_id)

		evaluation = self.evaluator.evaluate(frame, self.rules)
		spoken = self._narrate(evaluation, ts)
		return FrameResult(
			feedback=evaluation.feedback,
			accuracy=evaluation.accuracy,
			breathing_rate=rate,
			pose_id=self.pose_id,
			evaluation=evaluation,
			spoken=spoken,
		)
