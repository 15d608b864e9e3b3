"""
Markdown renderer for declaration pages.

Every declaration with children gets a page of its own; its children are
listed on that page under their MARK headings, each with an anchor matching
the fragment of its URL. Abstracts and signatures are already HTML by the
time they get here and are embedded verbatim.
"""

from __future__ import annotations

import posixpath


class RenderConfig:
    def __init__(self, *, heading_level=2, output_dir="api_reference"):
        self.heading_level = heading_level
        self.output_dir = output_dir


def _heading(text, level):
    return f"{'#' * level} {text}"


def page_uri(url, output_dir):
    """Map a declaration URL to the docs-relative Markdown file it lives in."""
    path = url.partition("#")[0]
    if path.endswith(".html"):
        path = path[: -len(".html")]
    return f"{output_dir}/{path}.md"


def anchor_id(doc):
    return doc.url.partition("#")[2] if doc.url else ""


def _link(target_uri, current_uri):
    return posixpath.relpath(target_uri, posixpath.dirname(current_uri))


def _inline(html):
    """Squash rendered HTML onto one line so it fits in a table cell."""
    return " ".join((html or "").split()).replace("|", "\\|")


def _parameters_table(doc):
    rows = ["| Name | Description |", "|------|-------------|"]
    for p in doc.parameters:
        rows.append(f"| `{p.name}` | {_inline(p.discussion)} |")
    return "\n".join(rows)


def render_member(doc, cfg, current_uri):
    parts = []
    aid = anchor_id(doc)
    if aid:
        parts += [f'<a name="{aid}"></a>', ""]

    title = f"`{doc.name}`"
    if doc.children and doc.url:
        title = f"[{title}]({_link(page_uri(doc.url, cfg.output_dir), current_uri)})"
    parts += [_heading(title, cfg.heading_level + 1), ""]

    if doc.declaration:
        parts += [doc.declaration, ""]
    if doc.abstract:
        parts += [doc.abstract, ""]
    if doc.discussion:
        parts += [doc.discussion, ""]
    if doc.default_impl_abstract:
        parts += ["**Default Implementation**", "", doc.default_impl_abstract, ""]
    if doc.parameters:
        parts += ["**Parameters:**", "", _parameters_table(doc), ""]
    if doc.return_discussion:
        parts += ["**Return Value:**", "", doc.return_discussion, ""]
    return "\n".join(parts)


def render_page(doc, cfg=None):
    if cfg is None:
        cfg = RenderConfig()
    current_uri = page_uri(doc.url, cfg.output_dir)

    parts = [_heading(doc.name, 1), ""]
    if doc.declaration:
        parts += [doc.declaration, ""]
    if doc.abstract:
        parts += [doc.abstract, ""]
    if doc.discussion:
        parts += [doc.discussion, ""]

    last_mark = None
    for child in doc.children:
        if child.mark is not last_mark:
            last_mark = child.mark
            if child.mark.name:
                parts += [_heading(child.mark.name, cfg.heading_level), ""]
        parts.append(render_member(child, cfg, current_uri))
        parts += ["---", ""]

    return "\n".join(parts)


def render_index(docs, coverage, cfg=None, *, title="API Reference"):
    if cfg is None:
        cfg = RenderConfig()
    current_uri = f"{cfg.output_dir}/index.md"
    lines = [_heading(title, 1), "", f"{coverage}% documentation coverage", ""]
    for doc in docs:
        link = _link(page_uri(doc.url, cfg.output_dir), current_uri)
        lines += [_heading(f"[{doc.name}]({link})", cfg.heading_level), ""]
        if doc.abstract:
            lines += [doc.abstract, ""]
    return "\n".join(lines)
