from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from engine.config import EvaluatorConfig
from engine.pose.geometry import angle_degrees
from engine.pose.rules import AngleRule, PoseRuleSet
from engine.pose.types import PoseFrame


POSITION_YOURSELF = "Please position yourself clearly in the frame."
HOLD_THE_POSE = "Hold the pose..."
ANALYZING = "Analyzing..."


class FeedbackKind(str, enum.Enum):
	GOOD = "good"
	LOW = "low"
	HIGH = "high"
	# Framing / hold-the-pose sentinels.
	GUIDANCE = "guidance"
	# Rules evaluated but nothing to say yet.
	PENDING = "pending"


@dataclass(frozen=True)
class FeedbackItem:
	text: str
	kind: FeedbackKind

	@property
	def affirming(self) -> bool:
		return self.kind is FeedbackKind.GOOD


@dataclass(frozen=True)
class FrameEvaluation:
	"""
	Result of scoring one frame against one rule set.

	`feedback` is the ordered text list shown to the user; `items` carries the
	same entries tagged with their kind.
	"""

	items: List[FeedbackItem] = field(default_factory=list)
	accuracy: float = 0.0
	rules_evaluated: int = 0

	@property
	def feedback(self) -> List[str]:
		return [item.text for item in self.items]

	def to_dict(self) -> Dict[str, Any]:
		return {
			"feedback": self.feedback,
			"kinds": [item.kind.value for item in self.items],
			"accuracy": self.accuracy,
			"rules_evaluated": self.rules_evaluated,
		}


class PoseRuleEvaluator:
	"""
	Stateless per-frame scorer. Accuracy and feedback are recomputed from scratch
	on every call; nothing carries over between frames.
	"""

	def __init__(self, config: Optional[EvaluatorConfig] = None) -> None:
		self.config = config or EvaluatorConfig()

	def evaluate(self, frame: PoseFrame, rules: Optional[PoseRuleSet]) -> FrameEvaluation:
		cfg = self.config
		if not rules or len(frame) == 0 or frame.mean_confidence() < cfg.frame_min_confidence:
			return FrameEvaluation(items=[FeedbackItem(POSITION_YOURSELF, FeedbackKind.GUIDANCE)], accuracy=0.0)

		items: List[FeedbackItem] = []
		total_score = 0.0
		evaluated = 0
		for rule in rules.values():
			score = self._score_rule(frame, rule, items)
			if score is None:
				continue
			total_score += score
			evaluated += 1

		if evaluated == 0:
			return FrameEvaluation(items=[FeedbackItem(HOLD_THE_POSE, FeedbackKind.GUIDANCE)], accuracy=0.0)

		accuracy = 100.0 * total_score / evaluated
		if not items:
			items = [FeedbackItem(ANALYZING, FeedbackKind.PENDING)]
		return FrameEvaluation(items=items, accuracy=accuracy, rules_evaluated=evaluated)

	def _score_rule(self, frame: PoseFrame, rule: AngleRule, items: List[FeedbackItem]) -> Optional[float]:
		"""
		Score one rule in [0..1] and append its feedback to `items`.
		Returns None when any of the three keypoints is missing or not confident.
		"""
		min_conf = self.config.keypoint_min_confidence
		a = frame.get(rule.joint_a)
		v = frame.get(rule.vertex)
		c = frame.get(rule.joint_c)
		if a is None or v is None or c is None:
			return None
		if a.confidence <= min_conf or v.confidence <= min_conf or c.confidence <= min_conf:
			return None

		angle = angle_degrees(a, v, c)
		deviation = abs(angle - rule.target_degrees)
		if deviation <= rule.tolerance_degrees:
			if rule.feedback_good:
				items.append(FeedbackItem(rule.feedback_good, FeedbackKind.GOOD))
			return 1.0

		score = max(0.0, 1.0 - (deviation - rule.tolerance_degrees) / self.config.score_falloff_degrees)
		if angle < rule.target_degrees:
			if rule.feedback_low:
				items.append(FeedbackItem(rule.feedback_low, FeedbackKind.LOW))
		elif rule.feedback_high:
			items.append(FeedbackItem(rule.feedback_high, FeedbackKind.HIGH))
		return score


_DEFAULT_EVALUATOR = PoseRuleEvaluator()


def evaluate(frame: PoseFrame, rules: Optional[PoseRuleSet]) -> FrameEvaluation:
	"""Score `frame` against `rules` with default thresholds."""
	return _DEFAULT_EVALUATOR.evaluate(frame, rules)
