"""Live feedback websocket. Route: /ws."""
import asyncio
import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from app_state import AppState
from deps import get_ws_state
from engine.audio.dispatcher import FeedbackAudioDispatcher
from engine.audio.player import WebSocketAudioPlayer
from engine.breathing import BreathingEstimator
from engine.config import AppConfig
from engine.pose.evaluator import PoseRuleEvaluator
from engine.pose.rules import PoseRuleSet, RuleSetError, get_pose_rules, parse_rule_set
from engine.pose.types import PoseFrame
from engine.session import FeedbackSession
from schemas.requests import FramePayload, SelectPosePayload

logger = logging.getLogger(__name__)
router = APIRouter(tags=["ws"])


class ClientChannel:
	"""Serializes sends to one websocket; frames and audio are sent from different tasks."""

	def __init__(self, websocket: WebSocket) -> None:
		self._ws = websocket
		self._lock = asyncio.Lock()

	async def send_json(self, message: Dict[str, Any]) -> None:
		payload = json.dumps(message, separators=(",", ":"))
		async with self._lock:
			await self._ws.send_text(payload)

	def send_soon(self, message: Dict[str, Any]) -> None:
		"""Fire-and-forget send; safe to call from synchronous code on the loop."""
		task = asyncio.create_task(self.send_json(message))
		task.add_done_callback(_log_send_failure)


def _log_send_failure(task: asyncio.Task) -> None:
	if task.cancelled():
		return
	exc = task.exception()
	if exc is not None:
		logger.debug("[WS] Send failed: %r", exc)


def build_session(state: AppState, channel: ClientChannel) -> FeedbackSession:
	cfg = state.cfg or AppConfig()

	def _breathing_log(message: str) -> None:
		logger.info(message)
		channel.send_soon({"type": "log", "msg": message})

	player = WebSocketAudioPlayer(channel.send_json, cfg.audio)
	return FeedbackSession(
		evaluator=PoseRuleEvaluator(cfg.evaluator),
		breathing=BreathingEstimator(cfg.breathing, logger=_breathing_log),
		dispatcher=FeedbackAudioDispatcher(state.speech, player),
		audio=cfg.audio,
	)


def resolve_pose(payload: SelectPosePayload) -> Optional[PoseRuleSet]:
	"""Rules for a select_pose message. Raises RuleSetError / KeyError."""
	if payload.pose_id is None:
		return None
	if payload.rules is not None:
		return parse_rule_set({k: v.model_dump() for k, v in payload.rules.items()})
	return get_pose_rules(payload.pose_id)


async def handle_message(state: AppState, session: FeedbackSession, channel: ClientChannel, raw: str) -> None:
	try:
		msg = json.loads(raw)
	except ValueError:
		state.dbg["bad_messages"] = int(state.dbg.get("bad_messages", 0)) + 1
		await channel.send_json({"type": "error", "detail": "message is not valid JSON"})
		return
	if not isinstance(msg, dict):
		await channel.send_json({"type": "error", "detail": "message must be a JSON object"})
		return

	kind = msg.get("type")
	if kind == "frame":
		try:
			payload = FramePayload.model_validate(msg)
		except ValidationError as e:
			state.dbg["bad_messages"] = int(state.dbg.get("bad_messages", 0)) + 1
			await channel.send_json({"type": "error", "detail": f"invalid frame: {e.error_count()} error(s)"})
			return
		frame = PoseFrame.from_dicts(
			payload.keypoint_dicts(),
			timestamp_ms=payload.timestamp_ms,
			max_keypoints=(state.cfg or AppConfig()).server.max_keypoints,
		)
		result = session.process_frame(frame, payload.timestamp_ms)
		state.dbg["frames"] = int(state.dbg.get("frames", 0)) + 1
		await channel.send_json(result.to_message())
	elif kind == "select_pose":
		try:
			payload = SelectPosePayload.model_validate(msg)
			rules = resolve_pose(payload)
		except (ValidationError, RuleSetError) as e:
			await channel.send_json({"type": "error", "detail": f"invalid pose: {e}"})
			return
		except KeyError:
			await channel.send_json({"type": "error", "detail": f"Pose {payload.pose_id} not found"})
			return
		session.select_pose(payload.pose_id, rules)
		logger.info("[WS] Pose selected: %s", payload.pose_id)
		await channel.send_json({"type": "pose_selected", "pose_id": payload.pose_id})
	elif kind == "audio_ended":
		player = session.dispatcher.player if session.dispatcher else None
		if isinstance(player, WebSocketAudioPlayer):
			player.notify_ended(msg.get("seq"))
	else:
		await channel.send_json({"type": "error", "detail": f"unknown message type: {kind!r}"})


@router.websocket("/ws")
async def ws_endpoint(websocket: WebSocket):
	state = get_ws_state(websocket)
	await websocket.accept()
	channel = ClientChannel(websocket)
	session = build_session(state, channel)
	key = id(websocket)
	state.sessions[key] = session
	try:
		while True:
			raw = await websocket.receive_text()
			await handle_message(state, session, channel, raw)
	except WebSocketDisconnect:
		pass
	finally:
		state.sessions.pop(key, None)
		if session.dispatcher is not None:
			await session.dispatcher.close()
