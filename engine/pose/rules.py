from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Tuple

from engine.pose.landmarks import resolve_landmark


class RuleSetError(ValueError):
	"""Raised when a rule payload from the rule source cannot be parsed."""


@dataclass(frozen=True)
class AngleRule:
	"""
	One angle check: the angle at `vertex` between joint_a and joint_c should be
	target_degrees +/- tolerance_degrees. Feedback strings may be empty.
	"""

	joint_a: int
	vertex: int
	joint_c: int
	target_degrees: float
	tolerance_degrees: float
	feedback_low: str = ""
	feedback_high: str = ""
	feedback_good: str = ""

	def to_dict(self) -> Dict[str, Any]:
		return {
			"p1": self.joint_a,
			"p2": self.vertex,
			"p3": self.joint_c,
			"target": self.target_degrees,
			"tolerance": self.tolerance_degrees,
			"feedback_low": self.feedback_low,
			"feedback_high": self.feedback_high,
			"feedback_good": self.feedback_good,
		}


# Rule name -> rule, in the order supplied by the rule source.
PoseRuleSet = Mapping[str, AngleRule]


def _required_number(raw: Mapping[str, Any], key: str, rule_name: str) -> float:
	v = raw.get(key)
	if v is None or isinstance(v, bool):
		raise RuleSetError(f"rule {rule_name!r}: missing numeric field {key!r}")
	try:
		return float(v)
	except (TypeError, ValueError) as e:
		raise RuleSetError(f"rule {rule_name!r}: field {key!r} is not a number: {v!r}") from e


def _landmark(raw: Mapping[str, Any], key: str, rule_name: str) -> int:
	if raw.get(key) is None:
		raise RuleSetError(f"rule {rule_name!r}: missing keypoint field {key!r}")
	try:
		return resolve_landmark(raw[key])
	except ValueError as e:
		raise RuleSetError(f"rule {rule_name!r}: {e}") from e


def _text(raw: Mapping[str, Any], key: str) -> str:
	v = raw.get(key)
	return str(v) if v is not None else ""


def parse_rule(name: str, raw: Any) -> AngleRule:
	if isinstance(raw, AngleRule):
		return raw
	if not isinstance(raw, Mapping):
		raise RuleSetError(f"rule {name!r}: expected an object, got {type(raw).__name__}")
	tolerance = _required_number(raw, "tolerance", name)
	if tolerance < 0:
		raise RuleSetError(f"rule {name!r}: tolerance must be >= 0")
	return AngleRule(
		joint_a=_landmark(raw, "p1", name),
		vertex=_landmark(raw, "p2", name),
		joint_c=_landmark(raw, "p3", name),
		target_degrees=_required_number(raw, "target", name),
		tolerance_degrees=tolerance,
		feedback_low=_text(raw, "feedback_low"),
		feedback_high=_text(raw, "feedback_high"),
		feedback_good=_text(raw, "feedback_good"),
	)


def parse_rule_set(raw: Any) -> PoseRuleSet:
	"""
	Parse a rule-source payload {name: {p1, p2, p3, target, tolerance, feedback_*}}
	into an immutable PoseRuleSet. Keypoints may be indices or MediaPipe names.
	"""
	if not isinstance(raw, Mapping):
		raise RuleSetError("rule set must be an object mapping rule names to rules")
	rules: Dict[str, AngleRule] = {}
	for name, body in raw.items():
		rules[str(name)] = parse_rule(str(name), body)
	return MappingProxyType(rules)


def rule_set_to_dict(rules: PoseRuleSet) -> Dict[str, Dict[str, Any]]:
	return {name: rule.to_dict() for name, rule in rules.items()}


# Built-in pose library: pose id -> (display name, rules).
_BUILTIN_POSES: Dict[str, Tuple[str, Dict[str, Dict[str, Any]]]] = {
	"Tree": (
		"Tree",
		{
			"standingKnee": {
				"p1": "right_hip", "p2": "right_knee", "p3": "right_ankle",
				"target": 180, "tolerance": 10,
				"feedback_low": "Straighten your standing leg.",
				"feedback_high": "",
				"feedback_good": "Standing leg is straight.",
			},
			"standingHip": {
				"p1": "right_knee", "p2": "right_hip", "p3": "left_hip",
				"target": 180, "tolerance": 15,
				"feedback_low": "Open your hips more by bringing your raised foot higher.",
				"feedback_high": "",
				"feedback_good": "Hips are well-aligned.",
			},
		},
	),
	"Warrior_II": (
		"Warrior II",
		{
			"frontKnee": {
				"p1": "left_hip", "p2": "left_knee", "p3": "left_ankle",
				"target": 90, "tolerance": 15,
				"feedback_low": "Bend your front knee more to a 90-degree angle.",
				"feedback_high": "Ease up on your front knee bend.",
				"feedback_good": "Front knee angle is perfect!",
			},
			"backKnee": {
				"p1": "right_hip", "p2": "right_knee", "p3": "right_ankle",
				"target": 180, "tolerance": 10,
				"feedback_low": "Straighten your back leg completely.",
				"feedback_high": "",
				"feedback_good": "Back leg is nice and straight.",
			},
			"torso": {
				"p1": "left_shoulder", "p2": "right_hip", "p3": "right_shoulder",
				"target": 180, "tolerance": 20,
				"feedback_low": "Keep your torso centered, don't lean forward.",
				"feedback_high": "",
				"feedback_good": "Torso is centered.",
			},
		},
	),
	"Triangle": (
		"Triangle",
		{
			"frontKnee": {
				"p1": "left_hip", "p2": "left_knee", "p3": "left_ankle",
				"target": 180, "tolerance": 10,
				"feedback_low": "Straighten your front leg.",
				"feedback_high": "",
				"feedback_good": "Front leg is straight.",
			},
			"hipAngle": {
				"p1": "left_knee", "p2": "left_hip", "p3": "right_hip",
				"target": 160, "tolerance": 15,
				"feedback_low": "Open your hips more towards the ceiling.",
				"feedback_high": "",
				"feedback_good": "Hips are open.",
			},
		},
	),
	"Downward_Dog": (
		"Downward Dog",
		{
			"knees": {
				"p1": "right_hip", "p2": "right_knee", "p3": "right_ankle",
				"target": 180, "tolerance": 20,
				"feedback_low": "Try to straighten your legs.",
				"feedback_high": "",
				"feedback_good": "Legs are straight.",
			},
			"hips": {
				"p1": "right_shoulder", "p2": "right_hip", "p3": "right_knee",
				"target": 150, "tolerance": 15,
				"feedback_low": "Lift your hips higher, creating an inverted V shape.",
				"feedback_high": "Lower your hips slightly.",
				"feedback_good": "Hip angle is great.",
			},
		},
	),
}


def list_poses() -> List[Dict[str, str]]:
	return [{"id": pose_id, "name": name} for pose_id, (name, _rules) in _BUILTIN_POSES.items()]


def get_pose_name(pose_id: str) -> str:
	return _BUILTIN_POSES[pose_id][0]


def get_pose_rules(pose_id: str) -> PoseRuleSet:
	"""Return the built-in rule set for pose_id. Raises KeyError if unknown."""
	_name, raw = _BUILTIN_POSES[pose_id]
	return parse_rule_set(raw)
