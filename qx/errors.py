"""
Exception types shared across qx
"""

from typing import List


class QxError(Exception):
    """Base class for errors reported to the user"""


class ConfigError(QxError):
    """Configuration is missing or invalid"""


class GenerationError(QxError):
    """Command generation failed (network, timeout, bad response)"""


class SecretDetectedError(QxError):
    """A query contains something that looks like a secret"""

    def __init__(self, descriptions: List[str]):
        self.descriptions = descriptions
        super().__init__(
            "potential secrets detected: "
            + ", ".join(descriptions)
            + " (use --force-send to send anyway)"
        )


class ExecutionError(QxError):
    """The selected command could not be started"""


class ClipboardError(QxError):
    """Writing to the system clipboard failed"""


class EmptyRefinement(QxError):
    """The revise prompt returned blank input"""


class HistoryEmpty(QxError):
    """No history entries recorded yet"""


class HistoryError(QxError):
    """The history file could not be read or parsed"""
