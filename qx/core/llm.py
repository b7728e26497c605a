"""
LLM provider base class and utilities for qx
"""

import re
import json
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional
from dataclasses import dataclass

from qx.core.guard import sanitize_output
from qx.errors import GenerationError

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7

_CONTINUATION = re.compile(r'[ \t]*\\\n[\t ]*')


@dataclass(frozen=True)
class FollowUpContext:
    """Previous query/command pair injected when revising a selection"""
    previous_query: str
    previous_command: str


class LLMProvider(ABC):
    """Abstract base class for LLM providers"""

    def __init__(self, api_key: str, model: str, **kwargs):
        self.api_key = api_key
        self.model = model
        self.base_url = kwargs.get('base_url')
        self.temperature = kwargs.get('temperature', DEFAULT_TEMPERATURE)

    @abstractmethod
    async def generate(
        self,
        query: str,
        count: int,
        pipe_context: str = "",
        follow_up: Optional[FollowUpContext] = None,
    ) -> List[str]:
        """Generate ``count`` command variants for a natural language query"""

    def get_system_prompt(self, count: int, has_pipe: bool = False, has_follow_up: bool = False) -> str:
        """Get the system prompt for command generation"""
        prompt = f"""You are a shell command generator. Generate shell commands based on user descriptions.

Rules:
- Generate POSIX-compatible commands that work in bash, zsh, and fish
- Return exactly {count} different command variants
- Commands should be practical and safe
- Prefer common Unix utilities (find, grep, awk, sed, etc.)
- Never include explanations, only raw commands
- Each command should solve the same task in a different way"""

        if has_pipe:
            prompt += """
- The user piped the output of a previous command; it is given inside <stdin> tags
- Use that output to make the commands precise (real file names, ids, columns)"""

        if has_follow_up:
            prompt += """
- The conversation contains a previous request and the command chosen for it
- The latest message refines that command; adjust it rather than starting over"""

        prompt += """

Response format (JSON):
{
  "commands": ["command1", "command2", ...]
}"""
        return prompt

    def build_messages(
        self,
        query: str,
        count: int,
        pipe_context: str = "",
        follow_up: Optional[FollowUpContext] = None,
    ) -> List[Dict[str, str]]:
        """Build the chat message list for one request"""
        if not query:
            raise GenerationError("query cannot be empty")

        user_message = query
        if pipe_context:
            user_message = f"Context:\n<stdin>\n{pipe_context}\n</stdin>\n\nTask: {query}"

        messages = [{
            "role": "system",
            "content": self.get_system_prompt(count, bool(pipe_context), follow_up is not None),
        }]
        if follow_up is not None:
            messages.append({"role": "user", "content": follow_up.previous_query})
            messages.append({"role": "assistant", "content": follow_up.previous_command})
        messages.append({"role": "user", "content": user_message})
        return messages


def parse_commands(content: str) -> List[str]:
    """Parse the JSON body returned by the model into cleaned commands"""
    if not content or not content.strip():
        raise GenerationError("empty response from LLM")

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise GenerationError(f"failed to parse LLM response: {e}") from e

    commands = data.get("commands") if isinstance(data, dict) else None
    if not isinstance(commands, list) or not commands:
        raise GenerationError("LLM returned no commands")

    valid = [
        format_command(sanitize_output(cmd))
        for cmd in commands
        if isinstance(cmd, str) and cmd.strip()
    ]
    if not valid:
        raise GenerationError("LLM returned only empty commands")
    return valid


def format_command(cmd: str) -> str:
    """Break a command onto continuation lines at |, && and || outside quotes"""
    out: List[str] = []
    in_single = in_double = escaped = False
    i = 0

    def break_line(op: str) -> None:
        while out and out[-1] == ' ':
            out.pop()
        out.append(f" \\\n\t{op} ")

    while i < len(cmd):
        c = cmd[i]

        if escaped:
            out.append(c)
            escaped = False
            i += 1
            continue
        if c == '\\':
            escaped = True
            out.append(c)
            i += 1
            continue
        if c == "'" and not in_double:
            in_single = not in_single
        elif c == '"' and not in_single:
            in_double = not in_double
        elif not in_single and not in_double and c in '|&':
            pair = cmd[i:i + 2]
            if pair in ('||', '&&'):
                break_line(pair)
                i += 2
            elif c == '|':
                break_line('|')
                i += 1
            else:
                out.append(c)
                i += 1
                continue
            while i < len(cmd) and cmd[i] == ' ':
                i += 1
            continue

        out.append(c)
        i += 1

    return ''.join(out).strip()


def unformat_command(cmd: str) -> str:
    """Join continuation lines produced by format_command back into one line"""
    if '\\\n' not in cmd:
        return cmd
    return _CONTINUATION.sub(' ', cmd).strip()


class LLMManager:
    """Manager class to handle different LLM providers"""

    def __init__(self, config):
        self.config = config
        self._provider = None

    def get_provider(self) -> LLMProvider:
        """Get the LLM provider for the current config"""
        if self._provider is None:
            self.config.validate_llm()
            from qx.providers.openai import OpenAIProvider
            self._provider = OpenAIProvider(
                api_key=self.config.api_key,
                model=self.config.model,
                base_url=self.config.base_url,
                request_timeout=self.config.timeout,
            )
        return self._provider

    async def generate(
        self,
        query: str,
        pipe_context: str = "",
        follow_up: Optional[FollowUpContext] = None,
    ) -> List[str]:
        """Generate commands using the configured provider"""
        provider = self.get_provider()
        logger.info(
            "generating %d commands (pipe=%s, follow_up=%s)",
            self.config.count, bool(pipe_context), follow_up is not None,
        )
        return await provider.generate(query, self.config.count, pipe_context, follow_up)
