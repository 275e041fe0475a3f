"""Pydantic request/response models for API validation and docs."""
from schemas.requests import (
	AngleRulePayload,
	EvaluatePayload,
	FramePayload,
	KeypointPayload,
	SelectPosePayload,
)
from schemas.responses import (
	EvaluationResponse,
	HealthResponse,
	PoseRulesResponse,
	PoseSummary,
)

__all__ = [
	"AngleRulePayload",
	"EvaluatePayload",
	"FramePayload",
	"KeypointPayload",
	"SelectPosePayload",
	"EvaluationResponse",
	"HealthResponse",
	"PoseRulesResponse",
	"PoseSummary",
]
