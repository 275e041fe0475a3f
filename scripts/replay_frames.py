#!/usr/bin/env python3
"""
Replay a recorded keypoint stream through a feedback session.

Input is JSON lines, one frame per line:
    {"timestamp_ms": 1712.0, "keypoints": [{"x": .., "y": .., "score": ..}, ...]}

Each frame's evaluation is printed as a JSON line. With --audio-dir and a
configured speech.url, spoken feedback is written there as numbered clips in
playback order.
"""

import argparse
import asyncio
import json
import logging
import mimetypes
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from engine.audio.dispatcher import FeedbackAudioDispatcher  # noqa: E402
from engine.audio.player import AudioPlayer  # noqa: E402
from engine.audio.speech import AudioClip, HttpSpeechService  # noqa: E402
from engine.breathing import BreathingEstimator  # noqa: E402
from engine.config import get_config, set_config_path  # noqa: E402
from engine.pose.evaluator import PoseRuleEvaluator  # noqa: E402
from engine.pose.rules import get_pose_rules, parse_rule_set  # noqa: E402
from engine.pose.types import PoseFrame  # noqa: E402
from engine.session import FeedbackSession  # noqa: E402

logger = logging.getLogger("replay_frames")


class DirectoryAudioPlayer(AudioPlayer):
	"""Writes each clip to <out_dir>/NNN.<ext> instead of playing it."""

	def __init__(self, out_dir: Path) -> None:
		self.out_dir = out_dir
		self.count = 0

	async def play(self, clip: AudioClip) -> None:
		self.count += 1
		ext = mimetypes.guess_extension(clip.mime_type) or ".bin"
		path = self.out_dir / f"{self.count:03d}{ext}"
		path.write_bytes(clip.data)
		logger.info("[Audio] %s <- %r", path.name, clip.text)


async def replay(args: argparse.Namespace) -> int:
	cfg = get_config()

	rules = None
	pose_id = None
	if args.rules:
		rules = parse_rule_set(json.loads(Path(args.rules).read_text(encoding="utf-8")))
		pose_id = args.pose or Path(args.rules).stem
	elif args.pose:
		rules = get_pose_rules(args.pose)
		pose_id = args.pose

	dispatcher = None
	if args.audio_dir:
		if not cfg.speech.url:
			logger.error("--audio-dir needs speech.url in config.json")
			return 2
		out_dir = Path(args.audio_dir)
		out_dir.mkdir(parents=True, exist_ok=True)
		dispatcher = FeedbackAudioDispatcher(HttpSpeechService(cfg.speech), DirectoryAudioPlayer(out_dir))

	session = FeedbackSession(
		evaluator=PoseRuleEvaluator(cfg.evaluator),
		breathing=BreathingEstimator(cfg.breathing, logger=logger.info),
		dispatcher=dispatcher,
		audio=cfg.audio,
	)
	session.select_pose(pose_id, rules)

	frames = 0
	accuracy_sum = 0.0
	with open(args.frames, "r", encoding="utf-8") as fh:
		for line_no, line in enumerate(fh, start=1):
			line = line.strip()
			if not line:
				continue
			try:
				row = json.loads(line)
			except ValueError:
				logger.warning("Skipping malformed line %d", line_no)
				continue
			ts = row.get("timestamp_ms")
			frame = PoseFrame.from_dicts(row.get("keypoints") or [], timestamp_ms=ts)
			result = session.process_frame(frame, ts)
			frames += 1
			accuracy_sum += result.accuracy
			if not args.quiet:
				print(json.dumps(result.to_message()))

	if dispatcher is not None:
		await dispatcher.drain()

	summary = {
		"frames": frames,
		"mean_accuracy": (accuracy_sum / frames) if frames else 0.0,
		"breathing_rate": session.breathing.latest_rate,
	}
	print(json.dumps({"type": "summary", **summary}))
	return 0


def main() -> int:
	parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
	parser.add_argument("frames", help="JSON-lines keypoint recording")
	parser.add_argument("--pose", help="Built-in pose id (e.g. Warrior_II), or name for --rules")
	parser.add_argument("--rules", help="JSON rule set file to evaluate against")
	parser.add_argument("--config", help="Path to config.json")
	parser.add_argument("--audio-dir", help="Write spoken feedback clips here")
	parser.add_argument("--quiet", action="store_true", help="Only print the summary")
	args = parser.parse_args()

	if args.config:
		set_config_path(args.config)
	logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s:%(message)s")
	return asyncio.run(replay(args))


if __name__ == "__main__":
	sys.exit(main())
