from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, List, Optional

from engine.config import BreathingConfig
from engine.pose.types import PoseFrame


@dataclass(frozen=True)
class BreathingSample:
	vertical_position: float
	timestamp_ms: float


def _smooth_1pole(series: List[float], dt: float, cutoff_hz: float) -> List[float]:
	"""
	Simple first-order low-pass (one-pole) filter.

	Light-weight and SciPy-free; enough to knock detector jitter off the
	shoulder signal without shifting breath-scale structure much.
	"""
	if not series or dt <= 0 or cutoff_hz <= 0:
		return list(series)

	# Standard RC one-pole: alpha = dt / (RC + dt), RC = 1 / (2*pi*f_c)
	rc = 1.0 / (2.0 * math.pi * cutoff_hz)
	alpha = dt / (rc + dt)

	out: List[float] = [series[0]]
	for i in range(1, len(series)):
		prev = out[-1]
		out.append(prev + alpha * (series[i] - prev))
	return out


def _prominence(series: List[float], i: int) -> float:
	"""
	Depth of the local minimum at i: how far it sits below the lower of the two
	highest points reached on each side before the signal drops below it again.
	"""
	val = series[i]
	left_max = val
	for j in range(i - 1, -1, -1):
		if series[j] < val:
			break
		left_max = max(left_max, series[j])
	right_max = val
	for j in range(i + 1, len(series)):
		if series[j] < val:
			break
		right_max = max(right_max, series[j])
	return min(left_max, right_max) - val


def find_breath_minima(series: List[float], min_prominence: float = 0.0) -> List[int]:
	"""
	Indices of interior samples strictly lower than both neighbours.

	In image coordinates y grows downwards, so a minimum is the top of a
	shoulder rise (an inhalation). With min_prominence > 0, shallow dips are
	ignored.
	"""
	n = len(series)
	if n < 3:
		return []

	minima: List[int] = []
	for i in range(1, n - 1):
		val = series[i]
		if not (val < series[i - 1] and val < series[i + 1]):
			continue
		if min_prominence > 0.0 and _prominence(series, i) < min_prominence:
			continue
		minima.append(i)
	return minima


class BreathingEstimator:
	"""
	Realtime breaths-per-minute estimate from shoulder height.

	Keeps a sliding window (default 10 s) of the mean shoulder y per frame and
	counts shoulder rises in it:

	    bpm = rises / window_span_s * 60

	where window_span_s is the time actually covered by the window, so the
	estimate is usable while the window is still filling.
	"""

	def __init__(
		self,
		config: Optional[BreathingConfig] = None,
		logger: Optional[Callable[[str], None]] = None,
	) -> None:
		self.config = config or BreathingConfig()
		self.logger: Callable[[str], None] = logger or (lambda _msg: None)
		self._window: Deque[BreathingSample] = deque()
		self._latest_rate: Optional[float] = None
		self._active_logged: bool = False

	@property
	def sample_count(self) -> int:
		return len(self._window)

	@property
	def latest_rate(self) -> Optional[float]:
		return self._latest_rate

	@property
	def window_duration_s(self) -> float:
		if len(self._window) < 2:
			return 0.0
		return (self._window[-1].timestamp_ms - self._window[0].timestamp_ms) / 1000.0

	def rate_at(self, timestamp_ms: float) -> Optional[float]:
		"""
		Latest rate, unless the newest usable sample is more than a window older
		than timestamp_ms (the person has left the frame).
		"""
		if self._latest_rate is None or not self._window:
			return None
		if self._window[-1].timestamp_ms < float(timestamp_ms) - self.config.window_seconds * 1000.0:
			return None
		return self._latest_rate

	def samples(self) -> List[BreathingSample]:
		return list(self._window)

	def reset(self) -> None:
		self._window.clear()
		self._latest_rate = None
		self._active_logged = False

	def add_sample(self, frame: PoseFrame, timestamp_ms: float) -> Optional[float]:
		"""
		Ingest one frame. Returns the current rate, or None when the frame has no
		usable shoulders or there is not enough history yet.
		"""
		cfg = self.config
		ls = frame.get(cfg.left_shoulder_index)
		rs = frame.get(cfg.right_shoulder_index)
		if ls is None or rs is None:
			return None
		if ls.confidence <= cfg.min_confidence or rs.confidence <= cfg.min_confidence:
			return None

		ts = float(timestamp_ms)
		if self._window and ts < self._window[-1].timestamp_ms:
			# Out-of-order frame; keep the window sorted.
			return None

		self._window.append(BreathingSample(vertical_position=(ls.y + rs.y) / 2.0, timestamp_ms=ts))
		cutoff = ts - cfg.window_seconds * 1000.0
		while self._window and self._window[0].timestamp_ms < cutoff:
			self._window.popleft()

		if len(self._window) < cfg.min_samples:
			return None

		rate = self._estimate()
		self._latest_rate = rate
		if rate is not None and not self._active_logged:
			self.logger(
				f"[Breathing] Estimating over ~{self.window_duration_s:.2f} s "
				f"({len(self._window)} samples): {rate:.1f} bpm"
			)
			self._active_logged = True
		return rate

	def _estimate(self) -> Optional[float]:
		duration_s = self.window_duration_s
		if duration_s <= 0.0:
			return None

		cfg = self.config
		series = [s.vertical_position for s in self._window]
		if cfg.smoothing_cutoff_hz > 0.0:
			dt = duration_s / (len(series) - 1)
			series = _smooth_1pole(series, dt, cfg.smoothing_cutoff_hz)

		rises = find_breath_minima(series, min_prominence=cfg.min_prominence)
		return len(rises) / duration_s * 60.0
