"""
Markdown rendering for documentation comments.

Doc comments in SourceKitten output are Markdown. They are rendered to HTML
once, while declarations are built, and the HTML is embedded as-is in the
generated pages.
"""

import markdown

_md = markdown.Markdown(extensions=["fenced_code", "tables"], output_format="html")


def render_markdown(text):
    if not text:
        return ""
    _md.reset()
    return _md.convert(text)


def code_fence(code, lang=""):
    code = code.rstrip("\n")
    return f"```{lang}\n{code}\n```\n"
