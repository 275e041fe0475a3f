"""Synthetic keypoint builders shared by the tests."""

import math
from typing import Dict, Optional, Tuple

from engine.pose.types import Keypoint, PoseFrame


def point_at(vertex: Tuple[float, float], angle_deg: float, r: float = 100.0) -> Tuple[float, float]:
	a = math.radians(angle_deg)
	return (vertex[0] + r * math.cos(a), vertex[1] + r * math.sin(a))


def make_frame(
	points: Dict[int, Tuple[float, float, float]],
	size: int = 33,
	default_confidence: float = 0.25,
	timestamp_ms: Optional[float] = None,
) -> PoseFrame:
	"""
	Frame with `size` slots. points maps index -> (x, y, confidence); every other
	slot gets a keypoint at the origin with default_confidence.
	"""
	kps = []
	for i in range(size):
		if i in points:
			x, y, c = points[i]
		else:
			x, y, c = 0.0, 0.0, default_confidence
		kps.append(Keypoint(x=x, y=y, confidence=c, index=i))
	return PoseFrame(keypoints=kps, timestamp_ms=timestamp_ms)


def angle_frame(angle_deg: float, confidence: float = 0.9) -> PoseFrame:
	"""Three-keypoint frame: 0 -> 1 (vertex) -> 2 forming angle_deg at index 1."""
	vertex = (0.0, 0.0)
	p1 = point_at(vertex, 0.0)
	p3 = point_at(vertex, angle_deg)
	return make_frame(
		{0: (p1[0], p1[1], confidence), 1: (vertex[0], vertex[1], confidence), 2: (p3[0], p3[1], confidence)},
		size=3,
	)
