"""
MkDocs plugin that builds a Swift API reference from SourceKitten output.

On ``on_config`` it loads (or runs) ``sourcekitten doc``, turns the output
into a merged declaration tree, and registers one generated page per
declaration that has children. Pages are rendered on demand in
``on_page_markdown``. After the build, an ``undocumented.json`` report is
written next to the site.
"""

from __future__ import annotations

import json
import logging
import os

from mkdocs.config import config_options
from mkdocs.config.base import Config as MkDocsConfig
from mkdocs.exceptions import PluginError
from mkdocs.plugins import BasePlugin
from mkdocs.structure.files import File

from .declaration import AccessControlLevel
from .renderer import RenderConfig, page_uri, render_index, render_page
from .sourcekitten import SourceKittenError, parse, run_sourcekitten

log = logging.getLogger("mkdocs.plugins.swiftdoc")

_INDEX = "__INDEX__"


class SwiftdocConfig(MkDocsConfig):
    sourcekitten_output = config_options.Type(str, default="")
    sourcekitten_path = config_options.Type(str, default="sourcekitten")
    sourcekitten_args = config_options.Type(list, default=[])
    developer_dir = config_options.Type(str, default="")
    min_acl = config_options.Type(str, default="public")
    skip_undocumented = config_options.Type(bool, default=False)
    exclude = config_options.Type(list, default=[])
    source_directory = config_options.Type(str, default="")
    output_dir = config_options.Type(str, default="api_reference")
    nav_title = config_options.Type(str, default="API Reference")
    heading_level = config_options.Type(int, default=2)
    undocumented_report = config_options.Type(bool, default=True)


def _abspath(path, config_dir):
    if os.path.isabs(path):
        return os.path.normpath(path)
    return os.path.normpath(os.path.join(config_dir, path))


def undocumented_warnings(tokens):
    return [
        {
            "file": t.filepath,
            "line": t.doc_line,
            "symbol": t.name,
            "symbol_kind": t.kind,
            "warning": "undocumented",
        }
        for t in tokens
    ]


class SwiftdocPlugin(BasePlugin[SwiftdocConfig]):

    def __init__(self):
        super().__init__()
        self._docs = []
        self._pages = {}
        self._undocumented = []
        self._coverage = 0
        self._source_directory = ""

    # ── Loading ──

    def _load_output(self, config_dir):
        path = self.config.get("sourcekitten_output", "")
        if path:
            path = _abspath(path, config_dir)
            try:
                with open(path, "r", encoding="utf-8") as f:
                    return f.read()
            except OSError as exc:
                raise PluginError(f"swiftdoc: cannot read {path}: {exc}") from exc
        args = self.config.get("sourcekitten_args", [])
        if not args:
            raise PluginError("swiftdoc: set either sourcekitten_output or sourcekitten_args")
        try:
            return run_sourcekitten(
                args,
                executable=self.config.get("sourcekitten_path", "sourcekitten"),
                developer_dir=self.config.get("developer_dir", "") or None,
            )
        except SourceKittenError as exc:
            raise PluginError(f"swiftdoc: {exc}") from exc

    def _parse(self, output, config_dir):
        try:
            min_acl = AccessControlLevel.from_name(self.config.get("min_acl", "public"))
        except ValueError as exc:
            raise PluginError(f"swiftdoc: {exc}") from exc
        excluded = [_abspath(p, config_dir) for p in self.config.get("exclude", [])]
        try:
            return parse(
                output,
                min_acl=min_acl,
                skip_undocumented=self.config.get("skip_undocumented", False),
                excluded_files=excluded,
                source_directory=self._source_directory,
            )
        except SourceKittenError as exc:
            raise PluginError(f"swiftdoc: {exc}") from exc

    def _register_pages(self, docs):
        out_dir = self.config["output_dir"]
        self._pages[f"{out_dir}/index.md"] = _INDEX
        for top in docs:
            for doc in top.walk():
                if doc.children:
                    self._pages[page_uri(doc.url, out_dir)] = doc

    # ── Navigation ──

    def _nav_entry(self, doc):
        uri = page_uri(doc.url, self.config["output_dir"])
        containers = [c for c in doc.children if c.children]
        if not containers:
            return {doc.name: uri}
        return {doc.name: [uri] + [self._nav_entry(c) for c in containers]}

    def _inject_nav(self, config):
        title = self.config["nav_title"]
        tree = [{"Overview": f"{self.config['output_dir']}/index.md"}]
        tree += [self._nav_entry(doc) for doc in self._docs]
        section = {title: tree}

        nav = config.get("nav")
        if nav is None:
            config["nav"] = [section]
            return
        for i, item in enumerate(nav):
            if isinstance(item, dict) and title in item:
                nav[i] = section
                return
        nav.append(section)

    # ── MkDocs lifecycle hooks ──

    def on_config(self, config, **kwargs):
        config_dir = os.path.dirname(config.get("config_file_path", "") or "") or os.getcwd()
        self._docs = []
        self._pages.clear()
        self._undocumented = []
        self._coverage = 0

        src = self.config.get("source_directory", "")
        self._source_directory = _abspath(src, config_dir) if src else config_dir

        output = self._load_output(config_dir)
        self._docs, self._coverage, self._undocumented = self._parse(output, config_dir)
        self._register_pages(self._docs)
        self._inject_nav(config)

        log.info(
            "swiftdoc: %d pages, %d%% documentation coverage, %d undocumented symbols",
            len(self._pages),
            self._coverage,
            len(self._undocumented),
        )
        return config

    def on_files(self, files, *, config, **kwargs):
        for uri in sorted(self._pages):
            f = File.generated(config, uri, content="")
            f.edit_uri = None
            files.append(f)
        return files

    def on_page_markdown(self, markdown, *, page, config, files, **kwargs):
        src_uri = getattr(page.file, "src_uri", None) or page.file.src_path
        target = self._pages.get(src_uri)
        if target is None:
            return markdown
        cfg = RenderConfig(
            heading_level=self.config["heading_level"], output_dir=self.config["output_dir"]
        )
        if target == _INDEX:
            return render_index(self._docs, self._coverage, cfg, title=self.config["nav_title"])
        return render_page(target, cfg)

    def on_post_build(self, *, config, **kwargs):
        if not self.config.get("undocumented_report", True):
            return
        report = {
            "warnings": undocumented_warnings(self._undocumented),
            "source_directory": self._source_directory,
        }
        path = os.path.join(config["site_dir"], "undocumented.json")
        os.makedirs(config["site_dir"], exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(report, f, indent=2)
        log.info("swiftdoc: wrote %s", path)
