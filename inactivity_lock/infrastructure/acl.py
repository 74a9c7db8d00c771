from datetime import datetime
from typing import Any, Dict, Optional
from inactivity_lock.domain.models import Thread


def _parse_timestamp(raw_date: Optional[str]) -> Optional[datetime]:
    if not raw_date:
        return None
    return datetime.fromisoformat(raw_date.replace("Z", "+00:00"))


class GitHubTranslator:
    """
    Anti-corruption layer that translates raw GitHub GraphQL search nodes into Thread instances.
    """

    @staticmethod
    def to_domain(raw_node: Dict[str, Any]) -> Thread:
        """
        Transforms a raw GitHub GraphQL issue or pull request node into a Thread.

        Args:
            raw_node (Dict[str, Any]): The raw JSON node from GitHub's search response.

        Returns:
            Thread: The domain model instance representing the thread.
        """
        updated_at_dt = _parse_timestamp(raw_node.get('updatedAt'))
        if updated_at_dt is None:
            raise ValueError("updatedAt is required to build Thread.")

        return Thread(
            typename=raw_node.get('__typename', ''),
            number=raw_node.get('number', 0),
            title=raw_node.get('title', ''),
            updated_at=updated_at_dt,
            closed_at=_parse_timestamp(raw_node.get('closedAt')),
            locked=raw_node.get('locked', False),
        )
