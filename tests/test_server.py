"""Tests for the REST routes and the live feedback websocket."""

import pytest
from fastapi.testclient import TestClient

from engine.config import AppConfig, AudioConfig
from engine.pose.evaluator import POSITION_YOURSELF
from engine.pose.types import MAX_KEYPOINTS
from server import create_app

from helpers import point_at
from test_audio import FakeSpeech


def _keypoints(points, size=33, default_confidence=0.25):
	rows = []
	for i in range(size):
		x, y, c = points.get(i, (0.0, 0.0, default_confidence))
		rows.append({"x": x, "y": y, "score": c})
	return rows


def _warrior_keypoints(front_knee_deg):
	knee = (300.0, 300.0)
	hip = point_at(knee, -90.0)
	ankle = point_at(knee, -90.0 + front_knee_deg)
	return _keypoints(
		{23: (hip[0], hip[1], 1.0), 25: (knee[0], knee[1], 1.0), 27: (ankle[0], ankle[1], 1.0)}
	)


@pytest.fixture
def client():
	with TestClient(create_app(cfg=AppConfig(audio=AudioConfig(settle_seconds=0.0)), speech=FakeSpeech())) as c:
		yield c


@pytest.fixture
def silent_client():
	with TestClient(create_app(cfg=AppConfig())) as c:
		yield c


# ============================================================================
# Test: REST
# ============================================================================

class TestRest:

	def test_health(self, client, silent_client):
		assert client.get("/health").json() == {"status": "ok", "speech_enabled": True, "clients": 0}
		assert silent_client.get("/health").json()["speech_enabled"] is False

	def test_list_poses(self, client):
		res = client.get("/api/poses")
		assert res.status_code == 200
		assert [p["id"] for p in res.json()] == ["Tree", "Warrior_II", "Triangle", "Downward_Dog"]

	def test_get_pose(self, client):
		res = client.get("/api/poses/Warrior_II")
		assert res.status_code == 200
		body = res.json()
		assert body["name"] == "Warrior II"
		assert body["rules"]["frontKnee"]["target"] == 90

	def test_unknown_pose(self, client):
		assert client.get("/api/poses/Lotus").status_code == 404
		res = client.post("/api/evaluate", json={"pose_id": "Lotus", "keypoints": []})
		assert res.status_code == 404

	def test_evaluate_out_of_frame(self, client):
		res = client.post(
			"/api/evaluate",
			json={"pose_id": "Tree", "keypoints": _keypoints({}, default_confidence=0.1)},
		)
		assert res.status_code == 200
		body = res.json()
		assert body["feedback"] == [POSITION_YOURSELF]
		assert body["kinds"] == ["guidance"]
		assert body["accuracy"] == 0.0

	def test_evaluate_builtin_pose(self, client):
		res = client.post("/api/evaluate", json={"pose_id": "Warrior_II", "keypoints": _warrior_keypoints(90.0)})
		body = res.json()
		assert body["feedback"] == ["Front knee angle is perfect!"]
		assert body["accuracy"] == pytest.approx(100.0)
		assert body["rules_evaluated"] == 1

	def test_evaluate_inline_rules(self, client):
		rules = {
			"knee": {
				"p1": "left_hip", "p2": "left_knee", "p3": "left_ankle",
				"target": 180, "tolerance": 10,
				"feedback_low": "Straighten the knee.",
			}
		}
		res = client.post("/api/evaluate", json={"rules": rules, "keypoints": _warrior_keypoints(90.0)})
		body = res.json()
		assert body["feedback"] == ["Straighten the knee."]
		assert body["kinds"] == ["low"]

	def test_evaluate_rejects_oversized_frames(self, client):
		huge_index = [{"x": 1, "y": 1, "score": 1.0, "index": 20_000_000}]
		assert client.post("/api/evaluate", json={"pose_id": "Tree", "keypoints": huge_index}).status_code == 422
		too_many = [{"x": 1, "y": 1, "score": 1.0}] * (MAX_KEYPOINTS + 1)
		assert client.post("/api/evaluate", json={"pose_id": "Tree", "keypoints": too_many}).status_code == 422

	def test_evaluate_bad_rules(self, client):
		rules = {"knee": {"p1": "tail", "p2": 25, "p3": 27, "target": 90, "tolerance": 10}}
		res = client.post("/api/evaluate", json={"rules": rules, "keypoints": []})
		assert res.status_code == 422


# ============================================================================
# Test: Websocket
# ============================================================================

class TestWebsocket:

	def test_select_pose_then_frame(self, client):
		with client.websocket_connect("/ws") as ws:
			ws.send_json({"type": "select_pose", "pose_id": "Warrior_II"})
			assert ws.receive_json() == {"type": "pose_selected", "pose_id": "Warrior_II"}

			ws.send_json({"type": "frame", "timestamp_ms": 0, "keypoints": _warrior_keypoints(150.0)})
			msg = ws.receive_json()
			assert msg["type"] == "evaluation"
			assert msg["pose_id"] == "Warrior_II"
			assert msg["feedback"] == ["Ease up on your front knee bend."]
			assert msg["kinds"] == ["high"]
			assert msg["breathing_rate"] is None

			audio = ws.receive_json()
			assert audio["type"] == "audio"
			assert audio["text"] == "Ease up on your front knee bend."
			assert audio["data_uri"].startswith("data:audio/wav;base64,")
			assert audio["seq"] == 1
			ws.send_json({"type": "audio_ended", "seq": audio["seq"]})

			# Holding the same mistake does not queue the sentence again.
			ws.send_json({"type": "frame", "timestamp_ms": 33, "keypoints": _warrior_keypoints(150.0)})
			assert ws.receive_json()["type"] == "evaluation"
			ws.send_json({"type": "select_pose", "pose_id": None})
			assert ws.receive_json() == {"type": "pose_selected", "pose_id": None}

	def test_frame_without_pose(self, silent_client):
		with silent_client.websocket_connect("/ws") as ws:
			ws.send_json({"type": "frame", "keypoints": _warrior_keypoints(90.0)})
			msg = ws.receive_json()
			assert msg["feedback"] == []
			assert msg["accuracy"] == 0.0

	def test_unknown_pose_reports_error(self, client):
		with client.websocket_connect("/ws") as ws:
			ws.send_json({"type": "select_pose", "pose_id": "Lotus"})
			msg = ws.receive_json()
			assert msg["type"] == "error"
			assert "Lotus" in msg["detail"]

	def test_bad_messages(self, client):
		with client.websocket_connect("/ws") as ws:
			ws.send_text("not json")
			assert ws.receive_json()["type"] == "error"
			ws.send_json({"type": "dance"})
			assert "dance" in ws.receive_json()["detail"]
			ws.send_json({"type": "frame", "keypoints": [{"x": "left"}]})
			assert ws.receive_json()["type"] == "error"
			ws.send_json({"type": "frame", "keypoints": [{"x": 1, "y": 1, "score": 1.0, "index": 20_000_000}]})
			assert ws.receive_json()["type"] == "error"
