"""Run the chat server with uvicorn using the configured host and port."""
import uvicorn

from chatroom.config import get_config


def main() -> None:
    config = get_config()
    uvicorn.run(
        "chatroom.main:app",
        host=config.server.host,
        port=config.server.port,
        log_level=config.logging.level.lower(),
    )


if __name__ == "__main__":
    main()
