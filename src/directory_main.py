import asyncio
import logging

from config import CFG
from logging_setup import configure_logging

configure_logging("directory")

from api_server import create_api_app, start_api_server, stop_api_server

logger = logging.getLogger(__name__)


async def main() -> None:
    """Entry point for the directory API process."""
    logger.info(
        "Starting directory API: storage=%s data_dir=%s invitation_cost=%s conversion_reward=%s",
        CFG.storage_backend,
        CFG.data_dir,
        CFG.invitation_cost,
        CFG.conversion_reward,
    )
    runner = await start_api_server(create_api_app())
    try:
        await asyncio.Event().wait()
    finally:
        await stop_api_server(runner)


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
