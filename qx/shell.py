"""
Shell integration scripts.

Each script defines ``__qx_widget`` and binds it to Ctrl-G. The widget runs
qx with the current line as the pre-filled query, captures stdout, and puts
whatever qx printed (the chosen command, or the original query after a
cancel) back into the line editor. Commands that qx executes write straight
to the terminal, so nothing is captured for them and the line is left empty.
"""

from qx.errors import QxError

BASH_SCRIPT = r'''# qx shell integration for bash
# Add to ~/.bashrc:  eval "$(qx --shell-integration bash)"
__qx_widget() {
    local output
    output=$(qx --query "$READLINE_LINE" </dev/tty)
    READLINE_LINE=$output
    READLINE_POINT=${#READLINE_LINE}
}
bind -x '"\C-g": __qx_widget'
'''

ZSH_SCRIPT = r'''# qx shell integration for zsh
# Add to ~/.zshrc:  eval "$(qx --shell-integration zsh)"
__qx_widget() {
    local output
    output=$(qx --query "$BUFFER" </dev/tty)
    LBUFFER=$output
    RBUFFER=""
    zle reset-prompt
}
zle -N __qx_widget
bindkey '^G' __qx_widget
'''

FISH_SCRIPT = r'''# qx shell integration for fish
# Add to ~/.config/fish/config.fish:  qx --shell-integration fish | source
function __qx_widget
    set -l output (qx --query (commandline) </dev/tty | string collect)
    commandline -r -- $output
    commandline -f repaint
end
bind \cg __qx_widget
'''

SCRIPTS = {
    "bash": BASH_SCRIPT,
    "zsh": ZSH_SCRIPT,
    "fish": FISH_SCRIPT,
}


def script(shell: str) -> str:
    """Integration script for ``shell``"""
    try:
        return SCRIPTS[shell]
    except KeyError:
        supported = ", ".join(SCRIPTS)
        raise QxError(f"unsupported shell: {shell or '(empty)'} (supported: {supported})") from None
