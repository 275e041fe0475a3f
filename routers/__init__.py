"""API routers: pose library (poses.py) and the live feedback websocket (ws.py)."""
