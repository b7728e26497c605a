"""
Secret detection for queries sent to the LLM, and sanitizing of LLM output
"""

import re
import logging
from typing import List, Pattern
from dataclasses import dataclass, field

from qx.errors import SecretDetectedError

logger = logging.getLogger(__name__)

# Control characters except \t (0x09) and \n (0x0a)
_CONTROL_CHARS = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]')


@dataclass(frozen=True)
class SecretRule:
    """A secret detection pattern (ids follow the gitleaks naming)"""
    rule_id: str
    description: str
    regex: Pattern[str]


@dataclass
class Detection:
    """A rule that matched"""
    rule_id: str
    description: str


@dataclass
class GuardResult:
    """Result of a secret check"""
    has_secrets: bool
    detected: List[Detection] = field(default_factory=list)


class SecretGuard:
    """Scans free text for embedded credentials before it leaves the machine"""

    def __init__(self):
        self.rules = self._get_rules()

    def _get_rules(self) -> List[SecretRule]:
        """Patterns for common secrets"""
        return [
            SecretRule(
                "aws-access-key", "AWS Access Key",
                re.compile(r'\b((?:A3T[A-Z0-9]|AKIA|ASIA|ABIA|ACCA)[A-Z2-7]{16})\b'),
            ),
            SecretRule(
                "aws-secret-key", "AWS Secret Key",
                re.compile(r'(?i)(aws_secret_access_key|aws_secret_key)[=:]["\']?([A-Za-z0-9/+=]{40})["\']?'),
            ),
            SecretRule(
                "openai-api-key", "OpenAI API Key",
                re.compile(
                    r'\b(sk-(?:proj|svcacct|admin)-[A-Za-z0-9_-]{74,}T3BlbkFJ[A-Za-z0-9_-]{20,}'
                    r'|sk-[a-zA-Z0-9]{20}T3BlbkFJ[a-zA-Z0-9]{20})\b'
                ),
            ),
            SecretRule(
                "anthropic-api-key", "Anthropic API Key",
                re.compile(r'\b(sk-ant-api03-[a-zA-Z0-9_\-]{93}AA)\b'),
            ),
            SecretRule(
                "github-pat", "GitHub Personal Access Token",
                re.compile(r'ghp_[0-9a-zA-Z]{36}'),
            ),
            SecretRule(
                "github-fine-grained-pat", "GitHub Fine-Grained PAT",
                re.compile(r'github_pat_\w{82}'),
            ),
            SecretRule(
                "github-app-token", "GitHub App Token",
                re.compile(r'(?:ghu|ghs)_[0-9a-zA-Z]{36}'),
            ),
            SecretRule(
                "gitlab-pat", "GitLab Personal Access Token",
                re.compile(r'glpat-[0-9a-zA-Z\-_]{20}'),
            ),
            SecretRule(
                "private-key", "Private Key",
                re.compile(r'(?i)-----BEGIN[ A-Z0-9_-]{0,100}PRIVATE KEY-----'),
            ),
            SecretRule(
                "jwt", "JWT Token",
                re.compile(r'\b(ey[a-zA-Z0-9]{17,}\.ey[a-zA-Z0-9/\\_-]{17,}\.[a-zA-Z0-9/\\_-]{10,}={0,2})\b'),
            ),
            SecretRule(
                "generic-api-key", "Generic API Key",
                re.compile(r'(?i)(api[_-]?key|apikey|secret[_-]?key|access[_-]?token)[=:]["\']?([a-zA-Z0-9_\-]{20,})["\']?'),
            ),
            SecretRule(
                "password-in-url", "Password in URL",
                re.compile(r'(?i)(mongodb|postgresql|mysql|redis)://[^:]+:([^@]+)@'),
            ),
            SecretRule(
                "bearer-token", "Bearer Token",
                re.compile(r'(?i)bearer\s+([a-zA-Z0-9_\-\.]{20,})'),
            ),
        ]

    def check(self, text: str) -> GuardResult:
        """Check text against every rule"""
        detected = [
            Detection(rule.rule_id, rule.description)
            for rule in self.rules
            if rule.regex.search(text)
        ]
        return GuardResult(has_secrets=bool(detected), detected=detected)


_guard = SecretGuard()


def check_query(query: str, force: bool = False) -> None:
    """Raise SecretDetectedError if the query looks like it carries a secret.

    ``force`` skips the check entirely.
    """
    if force:
        return
    result = _guard.check(query)
    if result.has_secrets:
        logger.warning(
            "query blocked by guard: %s",
            ", ".join(d.rule_id for d in result.detected),
        )
        raise SecretDetectedError([d.description for d in result.detected])


def sanitize_output(text: str) -> str:
    """Strip control characters (escape sequences, NUL, DEL) from LLM output"""
    return _CONTROL_CHARS.sub('', text)
