"""
Entry point for the Courtside web API.

    python web_main.py      ← REST + WebSocket on the host/port from config.yaml
"""

import uvicorn

from courtside.config import Config, load_config

if __name__ == "__main__":
    try:
        config = load_config()
    except FileNotFoundError:
        config = Config()
    uvicorn.run(
        "courtside.web.app:app",
        host=config.web.host,
        port=config.web.port,
        reload=True,
    )
