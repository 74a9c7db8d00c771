import logging
import os
import uuid
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class ActionOutputs:
    """
    Sink for step outputs and the run's failure status.

    Values are kept in memory and, when a ``GITHUB_OUTPUT`` file is available,
    appended to it in the delimiter form GitHub Actions parses.
    """

    def __init__(self, output_path: Optional[str] = None):
        self.output_path = output_path
        self.values: Dict[str, str] = {}
        self.failures: list[str] = []

    @classmethod
    def from_env(cls) -> "ActionOutputs":
        return cls(output_path=os.environ.get("GITHUB_OUTPUT") or None)

    @property
    def failed(self) -> bool:
        return bool(self.failures)

    def set_output(self, name: str, value: str) -> None:
        self.values[name] = value
        if not self.output_path:
            logger.info(f"Output {name}: {value}")
            return

        delimiter = f"ghadelimiter_{uuid.uuid4()}"
        with open(self.output_path, "a", encoding="utf-8") as fh:
            fh.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")

    def set_failed(self, message: str) -> None:
        """Reports an error and marks the run as failed without raising."""
        self.failures.append(message)
        logger.error(message)
        escaped = message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")
        print(f"::error::{escaped}", flush=True)
