"""Custom styling for questionary prompts.

Used by the context selection prompt of the command line interface.
"""

from questionary import Style

# ANSI 256 colors for broad terminal compatibility
PROMPT_STYLE = Style(
    [
        ("qmark", "fg:#af87ff bold"),
        ("question", "bold"),
        ("answer", "fg:#ff87d7 bold"),
        ("pointer", "fg:#ff87d7 bold"),
        ("highlighted", "fg:#1c1c1c bg:#ff87d7 bold"),
        ("instruction", "fg:#6c6c6c italic"),
        ("text", ""),
    ]
)

POINTER = "❯ "
QMARK = "? "
