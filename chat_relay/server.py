"""Chat relay service entry point.

Usage:
    chat-relay
    PORT=5001 ALLOWED_ORIGIN=http://localhost:3000 chat-relay
"""
import uvicorn

from chat_relay.config import Settings
from chat_relay.main import create_app


def main() -> None:
    settings = Settings.from_env()
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
