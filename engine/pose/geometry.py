from __future__ import annotations

import math
from typing import Optional

from engine.pose.types import Keypoint


def angle_degrees(p1: Optional[Keypoint], vertex: Optional[Keypoint], p3: Optional[Keypoint]) -> float:
	"""
	Interior angle at `vertex` formed by p1-vertex-p3, in degrees [0..180].

	Returns 0.0 if any point is missing. Confidence is not checked here; callers
	gate on it before trusting the result.
	"""
	if p1 is None or vertex is None or p3 is None:
		return 0.0

	radians = math.atan2(p3.y - vertex.y, p3.x - vertex.x) - math.atan2(p1.y - vertex.y, p1.x - vertex.x)
	angle = abs(math.degrees(radians))
	if angle > 180.0:
		angle = 360.0 - angle
	return angle
