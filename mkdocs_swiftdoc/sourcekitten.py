"""
Turns ``sourcekitten doc`` output into a tree of declarations.

The pipeline runs in this order:

  1. drop records of excluded source files
  2. build :class:`Declaration` nodes from the records, recursively
  3. merge extensions into the types they extend and drop duplicates
  4. group top-level declarations into per-kind overview nodes
  5. assign every node a URL (own page if it has children, else an anchor)

Nothing here does I/O except :func:`run_sourcekitten`. Counters for the
coverage figure live on a :class:`ParseContext` owned by a single
:func:`parse` call, so one context must not be shared between concurrent
parses.
"""

from __future__ import annotations

import fnmatch
import json
import logging
import os
import re
import subprocess
from dataclasses import dataclass, field
from typing import NamedTuple

from .declaration import (
    EXTENSION_MEMBERS_MARK,
    AccessControlLevel,
    Declaration,
    DeclarationType,
    Parameter,
    SourceMark,
    SourceRecord,
)
from .highlighter import highlight
from .markup import code_fence, render_markdown

log = logging.getLogger("mkdocs.plugins.swiftdoc")

NODOC_MARKER = ":nodoc:"
UNDOCUMENTED_ABSTRACT = "Undocumented"
ERROR_TYPENAME = "<<error type>>"

_NO_USR_HINT = (
    "First make sure all modules used in your project have been imported. "
    "If this token is declared in an `#if` block, please ignore this message."
)
_REST_DEFINITION_RE = re.compile(r"^\s*:[^\s]+:", re.MULTILINE)


class SourceKittenError(Exception):
    """Input that cannot be turned into documentation without losing symbols."""


@dataclass
class ParseContext:
    min_acl: AccessControlLevel = AccessControlLevel.PUBLIC
    skip_undocumented: bool = False
    source_directory: str = ""
    documented_count: int = 0
    undocumented_tokens: list[SourceRecord] = field(default_factory=list)

    @property
    def coverage(self):
        return doc_coverage(self.documented_count, len(self.undocumented_tokens))


class ParseResult(NamedTuple):
    declarations: list[Declaration]
    coverage: int
    undocumented: list[SourceRecord]


# ── Running SourceKitten ──


def run_sourcekitten(arguments, executable="sourcekitten", developer_dir=None):
    """Run SourceKitten and return its stdout."""
    env = dict(os.environ)
    if developer_dir:
        env["DEVELOPER_DIR"] = developer_dir
    cmd = [executable, *arguments]
    log.info("swiftdoc: running %s", " ".join(cmd))
    try:
        proc = subprocess.run(cmd, capture_output=True, text=True, env=env, check=False)
    except OSError as exc:
        raise SourceKittenError(f"cannot run {executable}: {exc}") from exc
    if proc.returncode != 0:
        raise SourceKittenError(
            f"{executable} exited with status {proc.returncode}: {proc.stderr.strip()}"
        )
    return proc.stdout


# ── Record filter ──


def _is_excluded(path, excluded_files):
    return any(path == p or fnmatch.fnmatch(path, p) for p in excluded_files)


def _file_buckets(data):
    if isinstance(data, dict):
        return list(data.items())
    if isinstance(data, list):
        buckets = []
        for entry in data:
            if not isinstance(entry, dict) or len(entry) != 1:
                raise SourceKittenError("expected one {file: records} entry per source file")
            buckets.extend(entry.items())
        return buckets
    raise SourceKittenError(f"unexpected SourceKitten output of type {type(data).__name__}")


def filter_excluded_files(data, excluded_files=()):
    """Return the per-file record lists of every file that is not excluded."""
    kept = []
    for path, records in _file_buckets(data):
        if _is_excluded(path, excluded_files or ()):
            continue
        kept.append(records if isinstance(records, list) else [records])
    return kept


# ── Documentation info ──


def _is_eligible(record, min_acl):
    if not record.usr:
        return False
    if NODOC_MARKER in (record.doc_comment or ""):
        return False
    # Extensions carry no ACL of their own, so they are always documented
    if DeclarationType(record.kind).is_extension:
        return True
    return AccessControlLevel.from_record(record) >= min_acl


def should_document(record, context):
    if not record.usr:
        log.warning("swiftdoc: `%s` has no USR. %s", record.name, _NO_USR_HINT)
        return False
    return _is_eligible(record, context.min_acl)


def has_documented_descendant(record, min_acl):
    """True if any record below this one would be documented on its own."""
    for child in record.substructure or []:
        if not child.is_diagnostic_wrapper:
            ctype = DeclarationType(child.kind)
            if ctype.should_document and child.full_as_xml and _is_eligible(child, min_acl):
                return True
        if has_documented_descendant(child, min_acl):
            return True
    return False


def make_default_doc_info(declaration):
    declaration.line = 0
    declaration.column = 0
    declaration.abstract = UNDOCUMENTED_ABSTRACT
    declaration.parameters = []
    declaration.children = []


def process_undocumented_token(record, declaration, context):
    filepath = record.filepath
    if filepath and filepath.startswith(context.source_directory or ""):
        context.undocumented_tokens.append(record)
    if context.skip_undocumented and not has_documented_descendant(record, context.min_acl):
        return False
    make_default_doc_info(declaration)
    return True


def make_paragraphs(paragraphs):
    if paragraphs is None:
        return None
    out = []
    for p in paragraphs:
        if "Para" in p:
            out.append(render_markdown(p["Para"]))
        elif "Verbatim" in p or "CodeListing" in p:
            code = p.get("Verbatim") or p.get("CodeListing") or ""
            out.append(render_markdown(code_fence(code)))
        else:
            tag = next(iter(p), None)
            log.warning("swiftdoc: unrecognized documentation tag `%s`", tag)
            out.append(render_markdown(str(next(iter(p.values()), ""))))
    return "".join(out)


def make_parameters(record):
    return [
        Parameter(name=p.get("name"), discussion=make_paragraphs(p.get("discussion")))
        for p in record.doc_parameters or []
    ]


def string_until_first_rest_definition(text):
    if text is None:
        return None
    m = _REST_DEFINITION_RE.search(text)
    return text[: m.start()] if m else text


def make_doc_info(record, declaration, context):
    """Fill in documentation fields; False means the record is dropped."""
    if not should_document(record, context):
        if context.skip_undocumented or not has_documented_descendant(record, context.min_acl):
            return False
        make_default_doc_info(declaration)
        return True
    if not record.full_as_xml:
        return process_undocumented_token(record, declaration, context)

    declaration.line = record.doc_line
    declaration.column = record.doc_column
    declaration.declaration = highlight(record.declaration_text, declaration.type.language)
    declaration.abstract = render_markdown(
        string_until_first_rest_definition(record.doc_comment) or ""
    )
    declaration.discussion = ""
    declaration.return_discussion = make_paragraphs(record.result_discussion)
    declaration.parameters = make_parameters(record)

    context.documented_count += 1
    return True


# ── Declaration builder ──


def make_source_declarations(records, context):
    declarations = []
    current_mark = SourceMark()
    for record in records:
        if record.is_diagnostic_wrapper:
            declarations += make_source_declarations(record.substructure or [], context)
            continue

        if record.kind is None:
            raise SourceKittenError(f"record `{record.name}` has no kind")
        decl_type = DeclarationType(record.kind)
        if decl_type.is_mark and (record.name or "").startswith(SourceMark.PREFIX):
            current_mark = SourceMark(record.name)
        if not decl_type.should_document:
            continue
        if decl_type.name is None:
            raise SourceKittenError(f"unsupported declaration kind `{record.kind}`")

        declaration = Declaration(
            type=decl_type,
            name=record.name,
            typename=record.typename,
            usr=record.usr,
            file=record.filepath,
            mark=current_mark,
            access_control_level=AccessControlLevel.from_record(record),
            start_line=record.parsed_scope_start,
            end_line=record.parsed_scope_end,
        )
        if not make_doc_info(record, declaration, context):
            continue
        declaration.children = make_source_declarations(record.substructure or [], context)
        declarations.append(declaration)
    return declarations


# ── Merging ──


def deduplication_key(decl):
    if decl.usr is None:
        # Nothing to correlate on, keep the declaration on its own
        return (id(decl),)
    if decl.type.is_extensible or decl.type.is_extension:
        return (decl.usr,)
    return (decl.usr, decl.type.kind)


def deduplicate_declarations(declarations):
    """Merge extensions into their types and collapse redundant declarations."""
    groups = {}
    for decl in declarations:
        groups.setdefault(deduplication_key(decl), []).append(decl)
    return [merge_declarations(group) for group in groups.values()]


def merge_declarations(decls):
    decls = list(dict.fromkeys(decls))
    extensions = [d for d in decls if d.type.is_extension]
    typedecls = [d for d in decls if not d.type.is_extension]

    if len(typedecls) > 1:
        log.warning(
            "swiftdoc: found conflicting type declarations with the same name, "
            "which may indicate a build issue: %s",
            ", ".join(f"{(t.type.name or '').lower()} {t.name}" for t in typedecls),
        )
    typedecl = typedecls[0] if typedecls else None

    if typedecl and typedecl.type.is_protocol:
        merge_default_implementations_into_protocol(typedecl, extensions)
        extensions = [ext for ext in extensions if ext.children]
        ext_mark = SourceMark(EXTENSION_MEMBERS_MARK)
        for ext in extensions:
            for member in ext.children:
                member.mark = ext_mark

    merged = typedecls + extensions
    first = typedecl or extensions[0]
    children = [child for d in merged for child in d.children]
    first.children = deduplicate_declarations(list(dict.fromkeys(children)))
    return first


def merge_default_implementations_into_protocol(protocol, extensions):
    """Move extension members that implement a requirement onto that requirement."""
    for requirement in protocol.children:
        for ext in extensions:
            defaults = [m for m in ext.children if m.name == requirement.name]
            if not defaults:
                continue
            ext.children = [m for m in ext.children if m.name != requirement.name]
            requirement.default_impl_abstract = "\n\n".join(
                text for d in defaults for text in (d.abstract or "", d.discussion or "")
            )


# ── Grouping and URLs ──


def group_docs(docs, decl_type):
    group = [d for d in docs if d.type == decl_type]
    rest = [d for d in docs if d.type != decl_type]
    if group:
        plural = decl_type.plural_name
        rest.append(
            Declaration(
                type=DeclarationType.overview(),
                name=plural,
                abstract=f"The following {plural.lower()} are available globally.",
                children=group,
            )
        )
    return rest


def make_doc_urls(docs, parents):
    """Assign URLs: containers get their own page, leaves an anchor on the parent's."""
    for doc in docs:
        if doc.children:
            slash = "/" if parents else ""
            doc.url = "/".join(parents) + slash + (doc.name or "unknown") + ".html"
            make_doc_urls(doc.children, parents + [doc.name or "unknown"])
            continue

        if doc.typename == ERROR_TYPENAME:
            log.warning(
                "swiftdoc: a compile error prevented %s from receiving a unique USR. "
                "Documentation may be incomplete, please check your build settings.",
                ".".join(parents[1:] + [doc.name or "unknown"]),
            )
        anchor = doc.usr
        if not anchor:
            anchor = doc.name or "unknown"
            log.warning("swiftdoc: `%s` has no USR. %s", anchor, _NO_USR_HINT)
        doc.url = "/".join(parents) + ".html#/" + anchor
    return docs


def doc_coverage(documented, undocumented):
    if documented == 0 and undocumented == 0:
        return 0
    return (100 * documented) // (documented + undocumented)


# ── Entry point ──


def parse(
    sourcekitten_output,
    min_acl=AccessControlLevel.PUBLIC,
    skip_undocumented=False,
    excluded_files=(),
    source_directory="",
):
    """Parse SourceKitten JSON into URL-addressed declarations and coverage."""
    try:
        data = json.loads(sourcekitten_output)
    except json.JSONDecodeError as exc:
        raise SourceKittenError(f"malformed SourceKitten output: {exc}") from exc

    context = ParseContext(
        min_acl=min_acl,
        skip_undocumented=skip_undocumented,
        source_directory=str(source_directory or ""),
    )
    docs = []
    for bucket in filter_excluded_files(data, excluded_files):
        try:
            records = [SourceRecord.from_dict(r) for r in bucket]
        except TypeError as exc:
            raise SourceKittenError(f"malformed SourceKitten output: {exc}") from exc
        # MARKs are scoped to the file they appear in
        docs += make_source_declarations(records, context)
    docs = deduplicate_declarations(docs)
    for decl_type in DeclarationType.all():
        docs = group_docs(docs, decl_type)
    return ParseResult(make_doc_urls(docs, []), context.coverage, context.undocumented_tokens)
