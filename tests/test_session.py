"""Tests for the per-client feedback session."""

import asyncio
import math

import pytest

from engine.audio.dispatcher import FeedbackAudioDispatcher
from engine.breathing import BreathingEstimator
from engine.config import AudioConfig, BreathingConfig
from engine.pose.evaluator import HOLD_THE_POSE, POSITION_YOURSELF
from engine.pose.rules import get_pose_rules
from engine.pose.types import PoseFrame
from engine.session import FeedbackSession

from helpers import make_frame, point_at
from test_audio import FakeSpeech, RecordingPlayer

IMMEDIATE = AudioConfig(settle_seconds=0.0)
BENT = "Ease up on your front knee bend."


def _warrior_frame(front_knee_deg, shoulder_y=240.0):
	knee = (300.0, 300.0)
	hip = point_at(knee, -90.0)
	ankle = point_at(knee, -90.0 + front_knee_deg)
	return make_frame(
		{
			11: (250.0, shoulder_y, 0.9),
			12: (350.0, shoulder_y, 0.9),
			23: (hip[0], hip[1], 1.0),
			25: (knee[0], knee[1], 1.0),
			27: (ankle[0], ankle[1], 1.0),
		}
	)


class TestFeedbackSession:

	def test_no_pose_selected_tracks_breathing_only(self):
		session = FeedbackSession(breathing=BreathingEstimator(BreathingConfig(expected_fps=30.0)))
		result = None
		for k in range(60):
			y = 240.0 - 5.0 * math.sin(2.0 * math.pi * 1.5 * k / 30.0)
			result = session.process_frame(_warrior_frame(90.0, shoulder_y=y), k * 1000.0 / 30.0)
		assert result.feedback == []
		assert result.accuracy == 0.0
		assert result.breathing_rate is not None
		assert result.to_message()["type"] == "evaluation"

	def test_selected_pose_is_evaluated(self):
		session = FeedbackSession()
		session.select_pose("Warrior_II", get_pose_rules("Warrior_II"))
		result = session.process_frame(_warrior_frame(90.0), 0.0)
		assert result.pose_id == "Warrior_II"
		assert result.feedback == ["Front knee angle is perfect!"]
		assert result.accuracy == pytest.approx(100.0)
		assert result.breathing_rate is None

	def test_empty_frame_clears_feedback(self):
		session = FeedbackSession()
		session.select_pose("Tree", get_pose_rules("Tree"))
		result = session.process_frame(PoseFrame(), 0.0)
		assert result.feedback == []
		assert result.accuracy == 0.0

	def test_out_of_frame_person(self):
		session = FeedbackSession()
		session.select_pose("Tree", get_pose_rules("Tree"))
		result = session.process_frame(make_frame({}, default_confidence=0.05), 0.0)
		assert result.feedback == [POSITION_YOURSELF]

	def test_clearing_pose(self):
		session = FeedbackSession()
		session.select_pose("Tree", get_pose_rules("Tree"))
		session.select_pose(None, None)
		assert session.rules is None
		assert session.process_frame(_warrior_frame(90.0), 0.0).feedback == []

	def test_breathing_rate_carries_over_unusable_frames(self):
		session = FeedbackSession(breathing=BreathingEstimator(BreathingConfig(expected_fps=30.0)))
		for k in range(40):
			session.process_frame(_warrior_frame(90.0, shoulder_y=240.0 + (k % 2)), k * 33.0)
		rate = session.breathing.latest_rate
		assert rate is not None
		result = session.process_frame(make_frame({}, default_confidence=0.0), 40 * 33.0)
		assert result.breathing_rate == rate

	def test_corrections_are_narrated(self):
		async def run():
			speech = FakeSpeech()
			player = RecordingPlayer()
			session = FeedbackSession(dispatcher=FeedbackAudioDispatcher(speech, player), audio=IMMEDIATE)
			session.select_pose("Warrior_II", get_pose_rules("Warrior_II"))
			good = session.process_frame(_warrior_frame(90.0), 0.0)
			bent = session.process_frame(_warrior_frame(150.0), 33.0)
			await session.dispatcher.drain()
			return good, bent, player

		good, bent, player = asyncio.run(run())
		assert good.spoken == []
		assert bent.spoken == ["Ease up on your front knee bend."]
		assert player.played == ["Ease up on your front knee bend."]

	def test_hold_the_pose_is_narrated(self):
		async def run():
			speech = FakeSpeech()
			player = RecordingPlayer()
			session = FeedbackSession(dispatcher=FeedbackAudioDispatcher(speech, player), audio=IMMEDIATE)
			session.select_pose("Downward_Dog", get_pose_rules("Downward_Dog"))
			# Confident frame, but no Downward Dog keypoints are confident.
			frame = make_frame({0: (0, 0, 1.0), 1: (0, 0, 1.0), 2: (0, 0, 1.0)})
			result = session.process_frame(frame, 0.0)
			await session.dispatcher.drain()
			return result, player

		result, player = asyncio.run(run())
		assert result.feedback == [HOLD_THE_POSE]
		assert player.played == [HOLD_THE_POSE]

	def test_breathing_rate_expires_after_a_window_without_shoulders(self):
		session = FeedbackSession(breathing=BreathingEstimator(BreathingConfig(expected_fps=30.0)))
		for k in range(40):
			session.process_frame(_warrior_frame(90.0, shoulder_y=240.0 + (k % 2)), k * 33.0)
		last = 39 * 33.0
		assert session.process_frame(make_frame({}, default_confidence=0.0), last + 9000.0).breathing_rate is not None
		assert session.process_frame(make_frame({}, default_confidence=0.0), last + 11000.0).breathing_rate is None
		assert session.process_frame(PoseFrame(), last + 12000.0).breathing_rate is None


# ============================================================================
# Test: Narration pacing
# ============================================================================

class TestNarrationPacing:

	def test_held_mistake_is_requested_once(self):
		async def run():
			speech = FakeSpeech()
			player = RecordingPlayer()
			session = FeedbackSession(dispatcher=FeedbackAudioDispatcher(speech, player), audio=IMMEDIATE)
			session.select_pose("Warrior_II", get_pose_rules("Warrior_II"))
			results = [session.process_frame(_warrior_frame(150.0), k * 33.0) for k in range(90)]
			pending = session.dispatcher.pending + session.dispatcher.in_flight
			await session.dispatcher.drain()
			return speech, player, results, pending

		speech, player, results, pending = asyncio.run(run())
		assert speech.requests == [BENT]
		assert player.played == [BENT]
		assert pending == 1
		assert results[0].spoken == [BENT]
		assert all(r.spoken == [] for r in results[1:])

	def test_corrections_wait_to_settle(self):
		async def run():
			speech = FakeSpeech()
			player = RecordingPlayer()
			session = FeedbackSession(dispatcher=FeedbackAudioDispatcher(speech, player))
			session.select_pose("Warrior_II", get_pose_rules("Warrior_II"))
			spoken = []
			for ts in (0.0, 500.0, 999.0, 1000.0, 1500.0):
				spoken.append(session.process_frame(_warrior_frame(150.0), ts).spoken)
			await session.dispatcher.drain()
			return speech, spoken

		speech, spoken = asyncio.run(run())
		assert spoken == [[], [], [], [BENT], []]
		assert speech.requests == [BENT]

	def test_flicker_restarts_the_settle_delay(self):
		session = FeedbackSession(dispatcher=FeedbackAudioDispatcher(FakeSpeech(), RecordingPlayer()))
		session.select_pose("Warrior_II", get_pose_rules("Warrior_II"))

		async def run():
			out = []
			for ts, deg in ((0.0, 150.0), (800.0, 90.0), (900.0, 150.0), (1500.0, 150.0), (1900.0, 150.0)):
				out.append(session.process_frame(_warrior_frame(deg), ts).spoken)
			await session.dispatcher.drain()
			return out

		assert asyncio.run(run()) == [[], [], [], [], [BENT]]

	def test_mistake_is_announced_again_after_it_was_fixed(self):
		async def run():
			speech = FakeSpeech()
			player = RecordingPlayer()
			session = FeedbackSession(dispatcher=FeedbackAudioDispatcher(speech, player), audio=IMMEDIATE)
			session.select_pose("Warrior_II", get_pose_rules("Warrior_II"))
			session.process_frame(_warrior_frame(150.0), 0.0)
			await session.dispatcher.drain()
			session.process_frame(_warrior_frame(90.0), 33.0)
			session.process_frame(_warrior_frame(150.0), 66.0)
			await session.dispatcher.drain()
			return speech, player

		speech, player = asyncio.run(run())
		assert speech.requests == [BENT, BENT]
		assert player.played == [BENT, BENT]

	def test_selecting_a_pose_resets_narration(self):
		async def run():
			speech = FakeSpeech()
			session = FeedbackSession(dispatcher=FeedbackAudioDispatcher(speech, RecordingPlayer()), audio=IMMEDIATE)
			session.select_pose("Warrior_II", get_pose_rules("Warrior_II"))
			session.process_frame(_warrior_frame(150.0), 0.0)
			await session.dispatcher.drain()
			session.select_pose("Warrior_II", get_pose_rules("Warrior_II"))
			again = session.process_frame(_warrior_frame(150.0), 33.0)
			await session.dispatcher.drain()
			return again

		assert asyncio.run(run()).spoken == [BENT]
