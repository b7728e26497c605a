import unittest

from qx.errors import QxError
from qx.shell import script


class ShellScriptTests(unittest.TestCase):
    def test_bash(self) -> None:
        text = script("bash")
        self.assertIn("__qx_widget", text)
        self.assertIn("bind -x", text)
        self.assertIn("READLINE_LINE", text)

    def test_zsh(self) -> None:
        text = script("zsh")
        self.assertIn("zle -N __qx_widget", text)
        self.assertIn("bindkey '^G'", text)
        self.assertIn("LBUFFER", text)

    def test_fish(self) -> None:
        text = script("fish")
        self.assertIn("bind \\cg __qx_widget", text)
        self.assertIn("commandline", text)

    def test_all_scripts_prefill_the_query(self) -> None:
        for shell in ("bash", "zsh", "fish"):
            self.assertIn("qx --query", script(shell))

    def test_unsupported(self) -> None:
        for shell in ("powershell", ""):
            with self.assertRaises(QxError) as ctx:
                script(shell)
            self.assertIn("supported: bash, zsh, fish", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
