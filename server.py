import argparse
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app_state import AppState
from engine.audio.speech import HttpSpeechService, SpeechService
from engine.config import AppConfig, get_config, set_config_path
from routers import poses, ws

logger = logging.getLogger(__name__)


def build_speech_service(cfg: AppConfig) -> Optional[SpeechService]:
	"""HTTP speech service from config, or None when speech.url is unset."""
	if not cfg.speech.url:
		logger.warning("[Speech] speech.url not set in config.json; spoken feedback disabled.")
		return None
	return HttpSpeechService(cfg.speech)


def configure_logging(cfg: AppConfig) -> None:
	level = getattr(logging, cfg.logging.level, logging.INFO)
	logging.basicConfig(level=level, format="%(levelname)s:%(name)s:%(message)s")


def create_app(cfg: Optional[AppConfig] = None, speech: Optional[SpeechService] = None) -> FastAPI:
	"""
	Build the FastAPI app. Tests pass cfg/speech directly; otherwise both come
	from config.json.
	"""

	@asynccontextmanager
	async def lifespan(app: FastAPI):
		state = AppState()
		state.cfg = cfg or get_config()
		state.speech = speech if speech is not None else build_speech_service(state.cfg)
		app.state.state = state
		logger.info("[Server] Ready (speech=%s)", state.speech.name() if state.speech else "off")
		try:
			yield
		finally:
			state.sessions.clear()

	app = FastAPI(title="Yogi feedback engine", lifespan=lifespan)
	app.add_middleware(
		CORSMiddleware,
		allow_origins=["*"],
		allow_credentials=True,
		allow_methods=["*"],
		allow_headers=["*"],
	)
	app.include_router(poses.router)
	app.include_router(ws.router)
	return app


def main() -> None:
	parser = argparse.ArgumentParser(description="Run the live pose feedback server")
	parser.add_argument("--config", help="Path to config.json (default: repo root)")
	parser.add_argument("--host", help="Override server.host")
	parser.add_argument("--port", type=int, help="Override server.port")
	args = parser.parse_args()

	if args.config:
		set_config_path(args.config)
	cfg = get_config()
	configure_logging(cfg)
	uvicorn.run(
		create_app(cfg),
		host=args.host or cfg.server.host,
		port=int(args.port or cfg.server.port),
	)


if __name__ == "__main__":
	main()
