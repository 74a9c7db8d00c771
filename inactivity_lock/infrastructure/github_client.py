import aiohttp
import logging
from typing import Any, Dict, List, Optional, Tuple

from inactivity_lock.domain.exceptions import GitHubAPIException

logger = logging.getLogger(__name__)

# Closed issues and pull requests share the ISSUE search type; the inline
# fragments keep __typename so callers can tell them apart.
SEARCH_THREADS_QUERY = """
query ($queryString: String!, $cursor: String) {
  search(query: $queryString, type: ISSUE, first: 100, after: $cursor) {
    pageInfo {
      hasNextPage
      endCursor
    }
    nodes {
      __typename
      ... on Issue {
        number
        title
        updatedAt
        closedAt
        locked
      }
      ... on PullRequest {
        number
        title
        updatedAt
        closedAt
        locked
      }
    }
  }
}
"""

DEFAULT_API_URL = "https://api.github.com"
API_VERSION = "2022-11-28"


class GitHubClient:
    """
    Client for the parts of the GitHub REST and GraphQL APIs the lock run needs:
    rate limit status, issue search and issue locking.
    """

    def __init__(self, token: str, api_url: str = DEFAULT_API_URL, graphql_url: Optional[str] = None):
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.graphql_url = graphql_url or f"{self.api_url}/graphql"
        self.headers = self._build_headers(token)

    @staticmethod
    def _build_headers(token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "User-Agent": "inactivity-lock",
            "X-GitHub-Api-Version": API_VERSION,
        }

    async def get_rate_limit(self, session: aiohttp.ClientSession) -> Dict[str, Any]:
        """
        Returns the ``resources`` mapping of ``GET /rate_limit``.
        """
        async with session.get(f"{self.api_url}/rate_limit", headers=self.headers) as response:
            response.raise_for_status()
            data = await response.json()

        resources = data.get('resources')
        if not isinstance(resources, dict):
            raise GitHubAPIException("Rate limit response did not contain resources.")
        return resources

    async def search_threads(
        self,
        session: aiohttp.ClientSession,
        query_string: str,
        cursor: Optional[str] = None,
        token: Optional[str] = None,
    ) -> Tuple[List[Dict], Optional[str], bool]:
        """
        Fetches a single page of issue search results.

        Returns:
            Tuple of (nodes, end_cursor, has_next_page).
        """
        payload = {
            "query": SEARCH_THREADS_QUERY,
            "variables": {"queryString": query_string, "cursor": cursor},
        }
        headers = self._build_headers(token) if token else self.headers

        async with session.post(self.graphql_url, json=payload, headers=headers) as response:
            response.raise_for_status()
            data = await response.json()

        if data.get('errors'):
            error_msg = data['errors'][0].get('message', 'Unknown GraphQL error')
            raise GitHubAPIException(error_msg)

        search_data = (data.get('data') or {}).get('search')
        if search_data is None:
            raise GitHubAPIException("GraphQL response did not contain search results.")

        nodes = search_data.get('nodes') or []
        page_info = search_data.get('pageInfo', {})

        return nodes, page_info.get('endCursor'), page_info.get('hasNextPage', False)

    async def lock_issue(
        self,
        session: aiohttp.ClientSession,
        owner: str,
        repo_name: str,
        number: int,
        lock_reason: Optional[str] = None,
    ) -> None:
        """
        Locks the conversation of an issue or pull request.
        ``lock_reason`` is only sent when it is a non-empty string.
        """
        url = f"{self.api_url}/repos/{owner}/{repo_name}/issues/{number}/lock"
        body: Dict[str, Any] = {}
        if lock_reason:
            body["lock_reason"] = lock_reason

        async with session.put(url, json=body, headers=self.headers) as response:
            response.raise_for_status()
        logger.debug(f"PUT {url} returned {response.status}")
