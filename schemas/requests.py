"""Pydantic request body models for the REST endpoints and websocket messages."""
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from engine.pose.types import MAX_KEYPOINTS


class KeypointPayload(BaseModel):
	"""One landmark as sent by the client. Any of score/visibility/confidence is accepted."""

	x: float
	y: float
	z: Optional[float] = None
	score: Optional[float] = Field(None, description="Landmark confidence [0..1]")
	visibility: Optional[float] = Field(None, description="MediaPipe visibility [0..1]")
	confidence: Optional[float] = Field(None, description="Alias for score")
	index: Optional[int] = Field(None, ge=0, le=MAX_KEYPOINTS - 1, description="Landmark index; defaults to list position")
	name: Optional[str] = None


class FramePayload(BaseModel):
	"""Websocket {"type": "frame"} message. Null entries are landmarks the detector did not report."""

	keypoints: List[Optional[KeypointPayload]] = Field(default_factory=list, max_length=MAX_KEYPOINTS)
	timestamp_ms: Optional[float] = Field(None, description="Wall-clock milliseconds; server time if omitted")

	def keypoint_dicts(self) -> List[Optional[Dict[str, Any]]]:
		return [kp.model_dump() if kp is not None else None for kp in self.keypoints]


class AngleRulePayload(BaseModel):
	"""One angle rule from the rule source. p1..p3 are landmark indices or MediaPipe names."""

	p1: Union[int, str]
	p2: Union[int, str] = Field(..., description="Vertex of the angle")
	p3: Union[int, str]
	target: float = Field(..., description="Ideal angle in degrees")
	tolerance: float = Field(..., ge=0, description="Accepted deviation in degrees")
	feedback_low: str = ""
	feedback_high: str = ""
	feedback_good: str = ""


class SelectPosePayload(BaseModel):
	"""
	Websocket {"type": "select_pose"} message. Either a built-in pose_id, or any
	pose_id together with its rules. pose_id null clears the selection.
	"""

	pose_id: Optional[str] = None
	rules: Optional[Dict[str, AngleRulePayload]] = None


class EvaluatePayload(BaseModel):
	"""Request body for POST /api/evaluate: score a single frame without a session."""

	pose_id: Optional[str] = None
	rules: Optional[Dict[str, AngleRulePayload]] = None
	keypoints: List[Optional[KeypointPayload]] = Field(default_factory=list, max_length=MAX_KEYPOINTS)
