import unittest
from unittest.mock import AsyncMock, MagicMock

import aiohttp

from inactivity_lock.domain.exceptions import GitHubAPIException
from inactivity_lock.infrastructure.github_client import GitHubClient, SEARCH_THREADS_QUERY


def _response(json_data=None, status=200):
    response = AsyncMock()
    response.status = status
    response.raise_for_status = MagicMock()
    response.json = AsyncMock(return_value=json_data)
    response.__aenter__ = AsyncMock(return_value=response)
    response.__aexit__ = AsyncMock(return_value=False)
    return response


class TestGitHubClient(unittest.TestCase):
    def test_headers_are_dict(self) -> None:
        token = "test-token"
        client = GitHubClient(token=token)

        self.assertIsInstance(client.headers, dict)
        self.assertEqual(client.headers["Authorization"], f"Bearer {token}")

    def test_headers_include_user_agent(self) -> None:
        client = GitHubClient(token="t")
        self.assertIn("User-Agent", client.headers)
        self.assertIn("Accept", client.headers)

    def test_graphql_url_defaults_to_api_url(self) -> None:
        client = GitHubClient(token="t", api_url="https://ghe.example.com/api/v3/")

        self.assertEqual(client.api_url, "https://ghe.example.com/api/v3")
        self.assertEqual(client.graphql_url, "https://ghe.example.com/api/v3/graphql")

    def test_query_keeps_typename_and_page_size(self) -> None:
        self.assertIn("__typename", SEARCH_THREADS_QUERY)
        self.assertIn("type: ISSUE", SEARCH_THREADS_QUERY)
        self.assertIn("first: 100", SEARCH_THREADS_QUERY)


class TestGitHubClientRequests(unittest.IsolatedAsyncioTestCase):
    async def test_search_threads_returns_nodes_and_page_info(self) -> None:
        client = GitHubClient(token="test-token")
        response = _response({
            "data": {
                "search": {
                    "pageInfo": {"endCursor": "cursor-1", "hasNextPage": True},
                    "nodes": [{"__typename": "Issue", "number": 1}],
                },
            }
        })
        session = AsyncMock()
        session.post = MagicMock(return_value=response)

        nodes, cursor, has_next = await client.search_threads(
            session, "repo:test-owner/test-repo state:closed is:unlocked"
        )

        self.assertEqual(nodes, [{"__typename": "Issue", "number": 1}])
        self.assertEqual(cursor, "cursor-1")
        self.assertTrue(has_next)

        url = session.post.call_args.args[0]
        kwargs = session.post.call_args.kwargs
        self.assertEqual(url, "https://api.github.com/graphql")
        self.assertEqual(
            kwargs["json"]["variables"],
            {"queryString": "repo:test-owner/test-repo state:closed is:unlocked", "cursor": None},
        )
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer test-token")

    async def test_search_threads_uses_explicit_token(self) -> None:
        client = GitHubClient(token="client-token")
        response = _response({"data": {"search": {"pageInfo": {}, "nodes": []}}})
        session = AsyncMock()
        session.post = MagicMock(return_value=response)

        nodes, cursor, has_next = await client.search_threads(session, "q", "abc", token="other-token")

        kwargs = session.post.call_args.kwargs
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer other-token")
        self.assertEqual(kwargs["json"]["variables"]["cursor"], "abc")
        self.assertEqual(nodes, [])
        self.assertIsNone(cursor)
        self.assertFalse(has_next)

    async def test_search_threads_raises_on_graphql_errors(self) -> None:
        client = GitHubClient(token="test-token")
        response = _response({"data": None, "errors": [{"message": "Bad credentials"}]})
        session = AsyncMock()
        session.post = MagicMock(return_value=response)

        with self.assertRaisesRegex(GitHubAPIException, "Bad credentials"):
            await client.search_threads(session, "q")

    async def test_get_rate_limit_returns_resources(self) -> None:
        client = GitHubClient(token="test-token")
        resources = {
            "core": {"remaining": 4999, "reset": 1719795600},
            "graphql": {"remaining": 5000, "reset": 1719795600},
        }
        response = _response({"resources": resources, "rate": {}})
        session = AsyncMock()
        session.get = MagicMock(return_value=response)

        result = await client.get_rate_limit(session)

        self.assertEqual(result, resources)
        self.assertEqual(session.get.call_args.args[0], "https://api.github.com/rate_limit")

    async def test_get_rate_limit_propagates_http_errors(self) -> None:
        client = GitHubClient(token="test-token")
        response = _response(status=401)
        response.raise_for_status = MagicMock(
            side_effect=aiohttp.ClientResponseError(
                request_info=MagicMock(), history=(), status=401, message="Unauthorized"
            )
        )
        session = AsyncMock()
        session.get = MagicMock(return_value=response)

        with self.assertRaises(aiohttp.ClientResponseError):
            await client.get_rate_limit(session)

    async def test_lock_issue_sends_reason(self) -> None:
        client = GitHubClient(token="test-token")
        response = _response(status=204)
        session = AsyncMock()
        session.put = MagicMock(return_value=response)

        await client.lock_issue(session, "test-owner", "test-repo", 3, "too heated")

        url = session.put.call_args.args[0]
        self.assertEqual(url, "https://api.github.com/repos/test-owner/test-repo/issues/3/lock")
        self.assertEqual(session.put.call_args.kwargs["json"], {"lock_reason": "too heated"})
        response.raise_for_status.assert_called_once()

    async def test_lock_issue_omits_empty_reason(self) -> None:
        client = GitHubClient(token="test-token")
        session = AsyncMock()
        session.put = MagicMock(side_effect=[_response(status=204), _response(status=204)])

        await client.lock_issue(session, "test-owner", "test-repo", 3, "")
        await client.lock_issue(session, "test-owner", "test-repo", 4, None)

        for call in session.put.call_args_list:
            self.assertEqual(call.kwargs["json"], {})
