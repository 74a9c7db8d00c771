import asyncio
import os
import sys
import logging

from inactivity_lock.domain.exceptions import ConfigurationException
from inactivity_lock.infrastructure.github_client import GitHubClient
from inactivity_lock.infrastructure.outputs import ActionOutputs
from inactivity_lock.infrastructure.settings import Settings
from inactivity_lock.application.lock_service import InactivityLockService

# Configure logging; RUNNER_DEBUG is set by GitHub when step debug logging is enabled
logging.basicConfig(
    level=logging.DEBUG if os.getenv("RUNNER_DEBUG") == "1" else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)

async def main() -> int:
    outputs = ActionOutputs.from_env()

    try:
        settings = Settings.from_env()
    except ConfigurationException as e:
        outputs.set_failed(f"Action failed with error: {e}")
        return 1

    github_client = GitHubClient(
        token=settings.token,
        api_url=settings.api_url,
        graphql_url=settings.graphql_url,
    )
    lock_service = InactivityLockService(
        github_client=github_client,
        settings=settings,
        outputs=outputs,
    )

    await lock_service.run()
    return 1 if outputs.failed else 0

def cli() -> None:
    sys.exit(asyncio.run(main()))

if __name__ == "__main__":
    cli()
