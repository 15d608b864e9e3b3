"""Syntax highlighting of declaration signatures with Pygments."""

from pygments import highlight as _pygments_highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import TextLexer, get_lexer_by_name
from pygments.util import ClassNotFound


def _lexer_for(language):
    try:
        return get_lexer_by_name(language)
    except ClassNotFound:
        return TextLexer()


def highlight(source, language="swift"):
    """Return ``source`` as a highlighted HTML block, or "" when there is none."""
    if not source:
        return ""
    formatter = HtmlFormatter(cssclass=f"highlight {language}")
    return _pygments_highlight(source, _lexer_for(language), formatter)
