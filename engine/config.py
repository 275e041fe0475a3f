from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class EvaluatorConfig:
	# Mean keypoint confidence below which the person is treated as out of frame.
	frame_min_confidence: float = 0.3
	# Each of a rule's three keypoints must be strictly above this.
	keypoint_min_confidence: float = 0.3
	# Degrees beyond the tolerance band over which a rule's score decays to 0.
	score_falloff_degrees: float = 45.0


@dataclass(frozen=True)
class BreathingConfig:
	window_seconds: float = 10.0
	# Both shoulders must be strictly above this to take a sample.
	min_confidence: float = 0.5
	expected_fps: float = 30.0
	# Seconds of samples (at expected_fps) required before estimating.
	min_seconds: float = 1.0
	# MediaPipe pose landmark indices.
	left_shoulder_index: int = 11
	right_shoulder_index: int = 12
	# 0 disables; otherwise one-pole low-pass cutoff applied before peak counting.
	smoothing_cutoff_hz: float = 0.0
	# 0 disables; otherwise a minimum must sit this far below both neighbours' max.
	min_prominence: float = 0.0

	@property
	def min_samples(self) -> int:
		return max(3, int(round(self.expected_fps * self.min_seconds)))


@dataclass(frozen=True)
class SpeechConfig:
	# If empty, spoken feedback is disabled.
	url: str = ""
	voice: str = "Algenib"
	# 0 means no timeout on the speech request.
	timeout_seconds: float = 0.0
	# Used to wrap raw PCM responses into WAV.
	sample_rate: int = 24000
	channels: int = 1
	sample_width: int = 2


@dataclass(frozen=True)
class AudioConfig:
	# Upper bound to wait for the client's "audio_ended" when a clip has no duration.
	default_clip_seconds: float = 8.0
	# Extra slack on top of a known clip duration.
	ack_grace_seconds: float = 2.0
	# Corrections must stay unchanged this long before they are spoken; 0 speaks at once.
	settle_seconds: float = 1.0


@dataclass(frozen=True)
class ServerConfig:
	host: str = "0.0.0.0"
	port: int = 8000
	# Landmark slots accepted per client frame (33 MediaPipe landmarks plus headroom).
	max_keypoints: int = 64


@dataclass(frozen=True)
class LoggingConfig:
	level: str = "INFO"


@dataclass(frozen=True)
class AppConfig:
	evaluator: EvaluatorConfig = field(default_factory=EvaluatorConfig)
	breathing: BreathingConfig = field(default_factory=BreathingConfig)
	speech: SpeechConfig = field(default_factory=SpeechConfig)
	audio: AudioConfig = field(default_factory=AudioConfig)
	server: ServerConfig = field(default_factory=ServerConfig)
	logging: LoggingConfig = field(default_factory=LoggingConfig)


_CONFIG_PATH: Optional[Path] = None
_CONFIG_CACHE: Optional[AppConfig] = None


def _repo_root() -> Path:
	# engine/config.py -> repo root is one level up.
	return Path(__file__).resolve().parents[1]


def get_default_config_path() -> Path:
	return _repo_root() / "config.json"


def set_config_path(path: str | Path) -> None:
	"""
	Override the config path (must be called before first get_config()).
	Intended for tooling such as scripts/replay_frames.py.
	"""
	global _CONFIG_PATH
	global _CONFIG_CACHE
	_CONFIG_PATH = Path(path).expanduser().resolve()
	_CONFIG_CACHE = None


def _deep_get(d: Dict[str, Any], keys: list[str], default: Any = None) -> Any:
	cur: Any = d
	for k in keys:
		if not isinstance(cur, dict):
			return default
		cur = cur.get(k)
	return cur if cur is not None else default


def _as_int(v: Any, default: int) -> int:
	try:
		return int(v)
	except (TypeError, ValueError):
		return int(default)


def _as_str(v: Any, default: str = "") -> str:
	return str(v) if v is not None else str(default)


def _as_float(v: Any, default: float) -> float:
	try:
		return float(v)
	except (TypeError, ValueError):
		return float(default)


def _positive(v: float, default: float) -> float:
	return float(v) if float(v) > 0.0 else float(default)


def _non_negative(v: float, default: float) -> float:
	return float(v) if float(v) >= 0.0 else float(default)


def load_config(path: Optional[str | Path] = None) -> AppConfig:
	p = Path(path).expanduser().resolve() if path else (_CONFIG_PATH or get_default_config_path())
	if not p.exists():
		# Defaults-only config; engine can still run.
		return AppConfig()
	try:
		raw = json.loads(p.read_text(encoding="utf-8"))
	except (OSError, ValueError):
		# If config is malformed, fail safe to defaults.
		return AppConfig()

	if not isinstance(raw, dict):
		return AppConfig()

	d_eval = EvaluatorConfig()
	frame_min = _as_float(_deep_get(raw, ["evaluator", "frame_min_confidence"], d_eval.frame_min_confidence), d_eval.frame_min_confidence)
	kp_min = _as_float(_deep_get(raw, ["evaluator", "keypoint_min_confidence"], d_eval.keypoint_min_confidence), d_eval.keypoint_min_confidence)
	falloff = _as_float(_deep_get(raw, ["evaluator", "score_falloff_degrees"], d_eval.score_falloff_degrees), d_eval.score_falloff_degrees)

	d_br = BreathingConfig()
	br_window = _as_float(_deep_get(raw, ["breathing", "window_seconds"], d_br.window_seconds), d_br.window_seconds)
	br_conf = _as_float(_deep_get(raw, ["breathing", "min_confidence"], d_br.min_confidence), d_br.min_confidence)
	br_fps = _as_float(_deep_get(raw, ["breathing", "expected_fps"], d_br.expected_fps), d_br.expected_fps)
	br_min_s = _as_float(_deep_get(raw, ["breathing", "min_seconds"], d_br.min_seconds), d_br.min_seconds)
	br_left = _as_int(_deep_get(raw, ["breathing", "left_shoulder_index"], d_br.left_shoulder_index), d_br.left_shoulder_index)
	br_right = _as_int(_deep_get(raw, ["breathing", "right_shoulder_index"], d_br.right_shoulder_index), d_br.right_shoulder_index)
	br_cutoff = _as_float(_deep_get(raw, ["breathing", "smoothing_cutoff_hz"], 0.0), 0.0)
	br_prom = _as_float(_deep_get(raw, ["breathing", "min_prominence"], 0.0), 0.0)

	d_sp = SpeechConfig()
	sp_url = _as_str(_deep_get(raw, ["speech", "url"], ""), "").strip()
	sp_voice = _as_str(_deep_get(raw, ["speech", "voice"], d_sp.voice), d_sp.voice).strip() or d_sp.voice
	sp_timeout = _as_float(_deep_get(raw, ["speech", "timeout_seconds"], 0.0), 0.0)
	sp_rate = _as_int(_deep_get(raw, ["speech", "sample_rate"], d_sp.sample_rate), d_sp.sample_rate)
	sp_channels = _as_int(_deep_get(raw, ["speech", "channels"], d_sp.channels), d_sp.channels)
	sp_width = _as_int(_deep_get(raw, ["speech", "sample_width"], d_sp.sample_width), d_sp.sample_width)

	d_au = AudioConfig()
	au_default = _as_float(_deep_get(raw, ["audio", "default_clip_seconds"], d_au.default_clip_seconds), d_au.default_clip_seconds)
	au_grace = _as_float(_deep_get(raw, ["audio", "ack_grace_seconds"], d_au.ack_grace_seconds), d_au.ack_grace_seconds)
	au_settle = _as_float(_deep_get(raw, ["audio", "settle_seconds"], d_au.settle_seconds), d_au.settle_seconds)

	srv_host = _as_str(_deep_get(raw, ["server", "host"], "0.0.0.0"), "0.0.0.0").strip() or "0.0.0.0"
	srv_port = _as_int(_deep_get(raw, ["server", "port"], 8000), 8000)
	srv_max_kp = _as_int(_deep_get(raw, ["server", "max_keypoints"], 64), 64)

	log_level = _as_str(_deep_get(raw, ["logging", "level"], "INFO"), "INFO").strip().upper() or "INFO"

	return AppConfig(
		evaluator=EvaluatorConfig(
			frame_min_confidence=_non_negative(frame_min, d_eval.frame_min_confidence),
			keypoint_min_confidence=_non_negative(kp_min, d_eval.keypoint_min_confidence),
			score_falloff_degrees=_positive(falloff, d_eval.score_falloff_degrees),
		),
		breathing=BreathingConfig(
			window_seconds=_positive(br_window, d_br.window_seconds),
			min_confidence=_non_negative(br_conf, d_br.min_confidence),
			expected_fps=_positive(br_fps, d_br.expected_fps),
			min_seconds=_positive(br_min_s, d_br.min_seconds),
			left_shoulder_index=br_left if br_left >= 0 else d_br.left_shoulder_index,
			right_shoulder_index=br_right if br_right >= 0 else d_br.right_shoulder_index,
			smoothing_cutoff_hz=_non_negative(br_cutoff, 0.0),
			min_prominence=_non_negative(br_prom, 0.0),
		),
		speech=SpeechConfig(
			url=sp_url,
			voice=sp_voice,
			timeout_seconds=_non_negative(sp_timeout, 0.0),
			sample_rate=sp_rate if sp_rate > 0 else d_sp.sample_rate,
			channels=sp_channels if sp_channels > 0 else d_sp.channels,
			sample_width=sp_width if sp_width > 0 else d_sp.sample_width,
		),
		audio=AudioConfig(
			default_clip_seconds=_positive(au_default, d_au.default_clip_seconds),
			ack_grace_seconds=_non_negative(au_grace, d_au.ack_grace_seconds),
			settle_seconds=_non_negative(au_settle, d_au.settle_seconds),
		),
		server=ServerConfig(
			host=srv_host,
			port=srv_port if srv_port > 0 else 8000,
			max_keypoints=srv_max_kp if srv_max_kp > 0 else 64,
		),
		logging=LoggingConfig(level=log_level),
	)


def get_config() -> AppConfig:
	global _CONFIG_CACHE
	if _CONFIG_CACHE is None:
		_CONFIG_CACHE = load_config()
	return _CONFIG_CACHE
