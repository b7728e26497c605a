"""
qx - natural language to shell commands

A terminal tool that turns a free-text request into candidate shell
commands, lets you fuzzy-filter and pick one, then execute, copy,
revise or print it.
"""
__version__ = "0.3.0"
__description__ = "Generate shell commands from natural language with an LLM"


from qx.config import Config

__all__ = [
    "__version__",
    "__description__",
    "Config",
]
