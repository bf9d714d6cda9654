import logging

from container import container

logger = logging.getLogger(__name__)


def main() -> None:
    listener = container.build_listener()
    logger.info("Starting Discord listener")
    listener.run(container.config.discord_token)


if __name__ == "__main__":
    main()
