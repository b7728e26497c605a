"""
OpenAI-compatible provider for qx
"""

import httpx
import logging
from typing import List, Optional

from qx.core.llm import LLMProvider, FollowUpContext, parse_commands
from qx.errors import GenerationError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_REQUEST_TIMEOUT = 30.0


class OpenAIProvider(LLMProvider):
    """Chat-completions provider for OpenAI and compatible APIs"""

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", **kwargs):
        super().__init__(api_key, model, **kwargs)
        self.base_url = (kwargs.get('base_url') or DEFAULT_BASE_URL).rstrip('/')
        self.request_timeout = kwargs.get('request_timeout', DEFAULT_REQUEST_TIMEOUT)
        # Tests pass an httpx.MockTransport here
        self.transport = kwargs.get('transport')

    async def generate(
        self,
        query: str,
        count: int,
        pipe_context: str = "",
        follow_up: Optional[FollowUpContext] = None,
    ) -> List[str]:
        """Generate commands through the chat completions endpoint"""
        headers = {
            'Authorization': f'Bearer {self.api_key}',
            'Content-Type': 'application/json'
        }

        payload = {
            "model": self.model,
            "messages": self.build_messages(query, count, pipe_context, follow_up),
            "response_format": {"type": "json_object"},
            "temperature": self.temperature,
        }

        try:
            async with httpx.AsyncClient(
                timeout=self.request_timeout, transport=self.transport
            ) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers=headers,
                    json=payload
                )
                response.raise_for_status()
                result = response.json()

        except httpx.HTTPStatusError as e:
            raise self._categorize_status(e.response) from e
        except httpx.TimeoutException as e:
            raise GenerationError("request timed out") from e
        except httpx.HTTPError as e:
            raise GenerationError(f"request failed: {e}") from e
        except ValueError as e:
            raise GenerationError(f"invalid JSON from API: {e}") from e

        try:
            content = result['choices'][0]['message']['content']
        except (KeyError, IndexError, TypeError):
            raise GenerationError("LLM returned no choices")

        if not content or not content.strip():
            raise GenerationError("LLM returned empty response")

        commands = parse_commands(content)
        logger.debug("provider returned %d commands", len(commands))
        return commands

    def _categorize_status(self, response: httpx.Response) -> GenerationError:
        """Turn an HTTP error status into a readable error"""
        status = response.status_code
        if status == 401:
            return GenerationError("authentication failed: check OPENAI_API_KEY")
        if status == 429:
            return GenerationError("rate limit exceeded")
        if status in (500, 502, 503):
            return GenerationError("API server error: try again later")

        error_msg = f"API error: {status}"
        try:
            error_detail = response.json()
            error_msg += f" - {error_detail.get('error', {}).get('message', 'Unknown error')}"
        except (ValueError, AttributeError):
            error_msg += f" - {response.text}"
        return GenerationError(error_msg)
