"""Web search tool backed by the LinkUp search API."""

import json
import os
import urllib.error
import urllib.request

from .messages import ToolResult

LINKUP_SEARCH_URL = "https://api.linkup.so/v1/search"
DEFAULT_MAX_RESULTS = 5
DEFAULT_TIMEOUT = 30
MAX_RESPONSE_SIZE = 2 * 1024 * 1024

MISSING_KEY_MESSAGE = """\
LinkUp API key not found. Set the LINKUP_API_KEY environment variable or add linkup_api_key to your config.

To get a free LinkUp API key:
1. Visit https://linkup.so
2. Sign up for a free account
3. Get your API key from the dashboard
4. Set LINKUP_API_KEY=your_api_key in your environment"""


def format_answer(data: dict, max_results: int = DEFAULT_MAX_RESULTS) -> str:
    """Render a sourcedAnswer payload as the answer followed by a source list."""
    output = str(data.get("answer") or "")
    sources = data.get("sources") or []
    if sources:
        output += "\n\n**Sources:**\n"
        for index, source in enumerate(sources[:max_results], start=1):
            output += f"\n{index}. **{source.get('name', '')}**\n"
            output += f"   {source.get('url', '')}\n"
            if source.get("snippet"):
                output += f"   _{source['snippet']}_\n"
    return output


class WebSearchTool:
    def __init__(self, api_key: str | None = None, timeout: int = DEFAULT_TIMEOUT):
        self.api_key = api_key or os.environ.get("LINKUP_API_KEY")
        self.timeout = timeout

    def search(self, query: str, max_results: int = DEFAULT_MAX_RESULTS) -> ToolResult:
        if not self.api_key:
            return ToolResult.fail(MISSING_KEY_MESSAGE)
        if not isinstance(query, str) or not query.strip():
            return ToolResult.fail("query must be a non-empty string")
        if not isinstance(max_results, int) or max_results < 1:
            max_results = DEFAULT_MAX_RESULTS

        body = json.dumps(
            {
                "q": query,
                "depth": "standard",
                "outputType": "sourcedAnswer",
                "includeImages": False,
            }
        ).encode("utf-8")
        req = urllib.request.Request(
            LINKUP_SEARCH_URL,
            data=body,
            method="POST",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                raw = resp.read(MAX_RESPONSE_SIZE + 1)
        except urllib.error.HTTPError as e:
            if e.code == 401:
                return ToolResult.fail("Invalid LinkUp API key. Please check your LINKUP_API_KEY.")
            if e.code == 402:
                return ToolResult.fail(
                    "LinkUp API credits exhausted. Please add more credits to your account."
                )
            return ToolResult.fail(f"Web search failed: HTTP {e.code} {e.reason}")
        except urllib.error.URLError as e:
            return ToolResult.fail(f"Web search failed: {e.reason}")
        except (TimeoutError, OSError) as e:
            return ToolResult.fail(f"Web search failed: {e}")

        if len(raw) > MAX_RESPONSE_SIZE:
            return ToolResult.fail("Web search failed: response too large")
        try:
            data = json.loads(raw.decode("utf-8", errors="replace"))
        except json.JSONDecodeError as e:
            return ToolResult.fail(f"Web search failed: invalid JSON response ({e})")
        if not isinstance(data, dict):
            return ToolResult.fail("Web search failed: unexpected response shape")
        return ToolResult.ok(format_answer(data, max_results))
