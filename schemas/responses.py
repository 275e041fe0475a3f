"""Pydantic response models for API docs."""
from typing import Any, Dict, List

from pydantic import BaseModel


class PoseSummary(BaseModel):
	id: str
	name: str


class PoseRulesResponse(BaseModel):
	"""Response from GET /api/poses/{pose_id}."""

	id: str
	name: str
	rules: Dict[str, Dict[str, Any]]


class EvaluationResponse(BaseModel):
	"""Response from POST /api/evaluate."""

	feedback: List[str]
	kinds: List[str]
	accuracy: float
	rules_evaluated: int


class HealthResponse(BaseModel):
	status: str
	speech_enabled: bool
	clients: int
