from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

# Slots a frame may hold: the 33 MediaPipe pose landmarks plus headroom for other
# landmark sets. Keypoints with a higher index are dropped.
MAX_KEYPOINTS = 64


@dataclass(frozen=True)
class Keypoint:
	"""
	A single detected body landmark.

	x/y are in whatever space the landmark source uses (pixels for the live
	client); only relative positions matter to the engine.
	"""

	x: float
	y: float
	confidence: float  # visibility/confidence [0..1] best-effort
	index: int = -1
	z: Optional[float] = None
	name: Optional[str] = None


@dataclass(frozen=True)
class PoseFrame:
	"""
	Ordered keypoints for a single video frame.

	- Slot i holds the landmark with index i, or None if the source did not
	  report it. Missing slots count as confidence 0.
	- timestamp_ms is wall-clock milliseconds when known.
	"""

	keypoints: List[Optional[Keypoint]] = field(default_factory=list)
	timestamp_ms: Optional[float] = None
	width: Optional[int] = None
	height: Optional[int] = None

	def __len__(self) -> int:
		return len(self.keypoints)

	def get(self, index: int) -> Optional[Keypoint]:
		if index < 0 or index >= len(self.keypoints):
			return None
		return self.keypoints[index]

	def mean_confidence(self) -> float:
		if not self.keypoints:
			return 0.0
		total = sum(float(kp.confidence) if kp is not None else 0.0 for kp in self.keypoints)
		return total / len(self.keypoints)

	@classmethod
	def from_keypoints(
		cls,
		keypoints: Sequence[Optional[Keypoint]],
		timestamp_ms: Optional[float] = None,
		max_keypoints: int = MAX_KEYPOINTS,
	) -> "PoseFrame":
		"""
		Build a frame from keypoints in any order. Keypoints carrying an explicit
		index are slotted by it; the rest take their list position. Anything at or
		beyond max_keypoints is dropped.
		"""
		slots: Dict[int, Keypoint] = {}
		for pos, kp in enumerate(keypoints):
			if kp is None:
				continue
			idx = kp.index if kp.index >= 0 else pos
			if idx >= max_keypoints:
				continue
			if kp.index != idx:
				kp = Keypoint(x=kp.x, y=kp.y, confidence=kp.confidence, index=idx, z=kp.z, name=kp.name)
			slots[idx] = kp
		size = (max(slots) + 1) if slots else 0
		size = min(max(size, len(keypoints)), max_keypoints)
		return cls(keypoints=[slots.get(i) for i in range(size)], timestamp_ms=timestamp_ms)

	@classmethod
	def from_dicts(
		cls,
		rows: Sequence[Any],
		timestamp_ms: Optional[float] = None,
		max_keypoints: int = MAX_KEYPOINTS,
	) -> "PoseFrame":
		"""
		Parse landmark dicts as sent by the browser client:
		    {"x": .., "y": .., "z": .., "score"|"visibility"|"confidence": .., "index"?: .., "name"?: ..}
		Rows that are not dicts, or lack x/y, become holes.
		"""
		kps: List[Optional[Keypoint]] = []
		for pos, row in enumerate(rows):
			if not isinstance(row, dict) or row.get("x") is None or row.get("y") is None:
				kps.append(None)
				continue
			conf = row.get("confidence")
			if conf is None:
				conf = row.get("score")
			if conf is None:
				conf = row.get("visibility")
			try:
				kps.append(
					Keypoint(
						x=float(row["x"]),
						y=float(row["y"]),
						z=float(row["z"]) if row.get("z") is not None else None,
						confidence=float(conf or 0.0),
						index=int(row["index"]) if row.get("index") is not None else pos,
						name=str(row["name"]) if row.get("name") else None,
					)
				)
			except (TypeError, ValueError):
				kps.append(None)
		return cls.from_keypoints(kps, timestamp_ms=timestamp_ms, max_keypoints=max_keypoints)
