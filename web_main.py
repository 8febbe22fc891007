"""
Entry point for the tourneybot web adapter.

    uv run python web_main.py       ← serves the API and WebSocket on server.host:server.port

The tournament lives in process memory, so run exactly one worker and no
auto-reload: a reload or a second worker starts from an empty session.
"""

import os

import uvicorn

from tourneybot.config import load_config

if __name__ == "__main__":
    config = load_config(os.environ.get("TOURNEYBOT_CONFIG", "config.yaml"), missing_ok=True)
    uvicorn.run(
        "tourneybot.web.app:app",
        host=config.server.host,
        port=config.server.port,
        workers=1,
        reload=False,
    )
