"""Pose library and one-shot evaluation. Routes: /api/poses, /api/poses/{pose_id}, /api/evaluate, /health."""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from app_state import AppState
from deps import get_state
from engine.config import AppConfig
from engine.pose.evaluator import PoseRuleEvaluator
from engine.pose.rules import (
	RuleSetError,
	get_pose_name,
	get_pose_rules,
	list_poses,
	parse_rule_set,
	rule_set_to_dict,
)
from engine.pose.types import PoseFrame
from schemas.requests import EvaluatePayload
from schemas.responses import EvaluationResponse, HealthResponse, PoseRulesResponse, PoseSummary

logger = logging.getLogger(__name__)
router = APIRouter(tags=["poses"])


@router.get("/health", response_model=HealthResponse)
async def health(state: AppState = Depends(get_state)):
	return {
		"status": "ok",
		"speech_enabled": state.speech is not None,
		"clients": len(state.sessions),
	}


@router.get("/api/poses", response_model=List[PoseSummary])
async def list_poses_endpoint():
	"""List the built-in poses."""
	return list_poses()


@router.get("/api/poses/{pose_id}", response_model=PoseRulesResponse)
async def get_pose_endpoint(pose_id: str):
	"""Get a built-in pose and its angle rules."""
	try:
		rules = get_pose_rules(pose_id)
	except KeyError:
		raise HTTPException(status_code=404, detail=f"Pose {pose_id} not found")
	return {"id": pose_id, "name": get_pose_name(pose_id), "rules": rule_set_to_dict(rules)}


@router.post("/api/evaluate", response_model=EvaluationResponse)
async def evaluate_endpoint(payload: EvaluatePayload, state: AppState = Depends(get_state)):
	"""
	Score a single frame. Body: {"pose_id": "...", "keypoints": [...]} or
	{"rules": {...}, "keypoints": [...]}. Inline rules win over pose_id.
	"""
	if payload.rules is not None:
		try:
			rules = parse_rule_set({k: v.model_dump() for k, v in payload.rules.items()})
		except RuleSetError as e:
			raise HTTPException(status_code=422, detail=str(e)) from e
	elif payload.pose_id:
		try:
			rules = get_pose_rules(payload.pose_id)
		except KeyError:
			raise HTTPException(status_code=404, detail=f"Pose {payload.pose_id} not found")
	else:
		rules = None

	cfg = state.cfg or AppConfig()
	frame = PoseFrame.from_dicts(
		[kp.model_dump() if kp is not None else None for kp in payload.keypoints],
		max_keypoints=cfg.server.max_keypoints,
	)
	evaluator = PoseRuleEvaluator(cfg.evaluator)
	return evaluator.evaluate(frame, rules).to_dict()
