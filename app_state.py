"""
Explicit app state: single source of truth for runtime lifecycle.
Created in lifespan, attached to app.state.state; injected into routes via Depends(get_state).
"""
from typing import Any, Dict, Optional

from engine.audio.speech import SpeechService
from engine.config import AppConfig


class AppState:
	"""
	Holds all runtime state for the app. Per-client feedback sessions are owned
	by their websocket handler; this only tracks them for status.
	"""

	cfg: Optional[AppConfig] = None

	# None when speech.url is not configured (spoken feedback disabled).
	speech: Optional[SpeechService] = None

	# Live websocket sessions keyed by connection id.
	sessions: Dict[int, Any]

	# Debug counters
	dbg: Dict[str, Any]

	def __init__(self) -> None:
		self.sessions = {}
		self.dbg = {
			"frames": 0,
			"bad_messages": 0,
		}
