from __future__ import annotations

from typing import Dict, Union


# MediaPipe Pose landmark order (33 points). Frames from the browser client
# arrive in this order, so list position == landmark index.
MEDIAPIPE_LANDMARKS = [
	"nose",
	"left_eye_inner",
	"left_eye",
	"left_eye_outer",
	"right_eye_inner",
	"right_eye",
	"right_eye_outer",
	"left_ear",
	"right_ear",
	"mouth_left",
	"mouth_right",
	"left_shoulder",
	"right_shoulder",
	"left_elbow",
	"right_elbow",
	"left_wrist",
	"right_wrist",
	"left_pinky",
	"right_pinky",
	"left_index",
	"right_index",
	"left_thumb",
	"right_thumb",
	"left_hip",
	"right_hip",
	"left_knee",
	"right_knee",
	"left_ankle",
	"right_ankle",
	"left_heel",
	"right_heel",
	"left_foot_index",
	"right_foot_index",
]

LANDMARK_INDEX: Dict[str, int] = {name: i for i, name in enumerate(MEDIAPIPE_LANDMARKS)}

LEFT_SHOULDER = LANDMARK_INDEX["left_shoulder"]
RIGHT_SHOULDER = LANDMARK_INDEX["right_shoulder"]


def resolve_landmark(ref: Union[int, str]) -> int:
	"""
	Map a landmark reference (index or MediaPipe name) to an index.

	Raises ValueError for unknown names or negative indices. Indices beyond the
	table are allowed; such rules are simply never evaluable.
	"""
	if isinstance(ref, bool):
		raise ValueError(f"invalid landmark reference: {ref!r}")
	if isinstance(ref, int):
		if ref < 0:
			raise ValueError(f"negative landmark index: {ref}")
		return ref
	if isinstance(ref, str):
		key = ref.strip()
		if key.lstrip("-").isdigit():
			return resolve_landmark(int(key))
		key = key.lower()
		if key in LANDMARK_INDEX:
			return LANDMARK_INDEX[key]
		raise ValueError(f"unknown landmark name: {ref!r}")
	raise ValueError(f"invalid landmark reference: {ref!r}")
