"""
Data model for SourceKitten records and the declarations built from them.

SourceKitten emits nested JSON dictionaries keyed by ``key.*`` strings. Those
are read once into :class:`SourceRecord` objects so the rest of the pipeline
works with explicit optional fields instead of raw dict lookups, and are then
turned into :class:`Declaration` trees.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Optional


# ── Raw SourceKitten records ──


@dataclass
class SourceRecord:
    kind: Optional[str] = None
    name: Optional[str] = None
    typename: Optional[str] = None
    usr: Optional[str] = None
    filepath: Optional[str] = None
    offset: Optional[int] = None
    length: Optional[int] = None
    doc_line: Optional[int] = None
    doc_column: Optional[int] = None
    parsed_scope_start: Optional[int] = None
    parsed_scope_end: Optional[int] = None
    full_as_xml: Optional[str] = None
    doc_comment: Optional[str] = None
    parsed_declaration: Optional[str] = None
    doc_declaration: Optional[str] = None
    accessibility: Optional[str] = None
    diagnostic_stage: Optional[str] = None
    doc_parameters: Optional[list[dict]] = None
    result_discussion: Optional[list[dict]] = None
    substructure: Optional[list[SourceRecord]] = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data):
        """Build a record (and its substructure, recursively) from JSON."""
        if not isinstance(data, dict):
            raise TypeError(f"expected a SourceKitten record, got {type(data).__name__}")
        sub = data.get("key.substructure")
        return cls(
            kind=data.get("key.kind"),
            name=data.get("key.name"),
            typename=data.get("key.typename"),
            usr=data.get("key.usr"),
            filepath=data.get("key.filepath"),
            offset=data.get("key.offset"),
            length=data.get("key.length"),
            doc_line=data.get("key.doc.line"),
            doc_column=data.get("key.doc.column"),
            parsed_scope_start=data.get("key.parsed_scope.start"),
            parsed_scope_end=data.get("key.parsed_scope.end"),
            full_as_xml=data.get("key.doc.full_as_xml"),
            doc_comment=data.get("key.doc.comment"),
            parsed_declaration=data.get("key.parsed_declaration"),
            doc_declaration=data.get("key.doc.declaration"),
            accessibility=data.get("key.accessibility"),
            diagnostic_stage=data.get("key.diagnostic_stage"),
            doc_parameters=data.get("key.doc.parameters"),
            result_discussion=data.get("key.doc.result_discussion"),
            substructure=[cls.from_dict(s) for s in sub] if sub is not None else None,
            raw=data,
        )

    @property
    def is_diagnostic_wrapper(self):
        # Key presence is what matters, the stage value itself is irrelevant
        return "key.diagnostic_stage" in self.raw

    @property
    def declaration_text(self):
        return self.parsed_declaration or self.doc_declaration


# ── Declaration kinds ──

_SWIFT = "source.lang.swift.decl."
_OBJC = "sourcekitten.source.lang.objc.decl."

SWIFT_MARK_KIND = "source.lang.swift.syntaxtype.comment.mark"
OBJC_MARK_KIND = "sourcekitten.source.lang.objc.mark"
OVERVIEW_KIND = "Overview"

# kind -> (display name, plural label). Order is the order of the
# top-level overview sections.
_TYPES = {
    # Swift
    _SWIFT + "class": ("Class", "Classes"),
    _SWIFT + "struct": ("Structure", "Structures"),
    _SWIFT + "enum": ("Enumeration", "Enumerations"),
    _SWIFT + "protocol": ("Protocol", "Protocols"),
    _SWIFT + "extension": ("Extension", "Extensions"),
    _SWIFT + "extension.class": ("Class Extension", "Class Extensions"),
    _SWIFT + "extension.struct": ("Structure Extension", "Structure Extensions"),
    _SWIFT + "extension.enum": ("Enumeration Extension", "Enumeration Extensions"),
    _SWIFT + "extension.protocol": ("Protocol Extension", "Protocol Extensions"),
    _SWIFT + "function.free": ("Function", "Functions"),
    _SWIFT + "var.global": ("Global Variable", "Global Variables"),
    _SWIFT + "typealias": ("Type Alias", "Type Aliases"),
    _SWIFT + "function.operator": ("Operator", "Operators"),
    _SWIFT + "function.operator.infix": ("Infix Operator", "Infix Operators"),
    _SWIFT + "function.operator.prefix": ("Prefix Operator", "Prefix Operators"),
    _SWIFT + "function.operator.postfix": ("Postfix Operator", "Postfix Operators"),
    _SWIFT + "associatedtype": ("Associated Type", "Associated Types"),
    _SWIFT + "function.constructor": ("Initializer", "Initializers"),
    _SWIFT + "function.destructor": ("Deinitializer", "Deinitializers"),
    _SWIFT + "function.method.instance": ("Instance Method", "Instance Methods"),
    _SWIFT + "function.method.class": ("Class Method", "Class Methods"),
    _SWIFT + "function.method.static": ("Static Method", "Static Methods"),
    _SWIFT + "function.subscript": ("Subscript", "Subscripts"),
    _SWIFT + "var.instance": ("Instance Variable", "Instance Variables"),
    _SWIFT + "var.class": ("Class Variable", "Class Variables"),
    _SWIFT + "var.static": ("Static Variable", "Static Variables"),
    _SWIFT + "var.local": ("Local Variable", "Local Variables"),
    _SWIFT + "var.parameter": ("Parameter", "Parameters"),
    _SWIFT + "enumcase": ("Enumeration Case", "Enumeration Cases"),
    _SWIFT + "enumelement": ("Enumeration Element", "Enumeration Elements"),
    _SWIFT + "generic_type_param": ("Generic Type Parameter", "Generic Type Parameters"),
    _SWIFT + "function.accessor.getter": ("Getter", "Getters"),
    _SWIFT + "function.accessor.setter": ("Setter", "Setters"),
    _SWIFT + "function.accessor.willset": ("willSet Observer", "willSet Observers"),
    _SWIFT + "function.accessor.didset": ("didSet Observer", "didSet Observers"),
    _SWIFT + "function.accessor.address": ("Addressor", "Addressors"),
    _SWIFT + "function.accessor.mutableaddress": ("Mutable Addressor", "Mutable Addressors"),
    SWIFT_MARK_KIND: ("Mark", "Marks"),
    # Objective-C
    _OBJC + "class": ("Class", "Classes"),
    _OBJC + "category": ("Category", "Categories"),
    _OBJC + "protocol": ("Protocol", "Protocols"),
    _OBJC + "enum": ("Enumeration", "Enumerations"),
    _OBJC + "enumcase": ("Enumeration Case", "Enumeration Cases"),
    _OBJC + "struct": ("Structure", "Structures"),
    _OBJC + "field": ("Field", "Fields"),
    _OBJC + "ivar": ("Instance Variable", "Instance Variables"),
    _OBJC + "typedef": ("Type Definition", "Type Definitions"),
    _OBJC + "constant": ("Constant", "Constants"),
    _OBJC + "function": ("Function", "Functions"),
    _OBJC + "initializer": ("Initializer", "Initializers"),
    _OBJC + "method.class": ("Class Method", "Class Methods"),
    _OBJC + "method.instance": ("Instance Method", "Instance Methods"),
    _OBJC + "property": ("Property", "Properties"),
    _OBJC + "unexposed": ("Unexposed", "Unexposed"),
    OBJC_MARK_KIND: ("Mark", "Marks"),
}

_EXTENSIBLE = frozenset(
    {
        _SWIFT + "class",
        _SWIFT + "struct",
        _SWIFT + "enum",
        _SWIFT + "protocol",
        _OBJC + "class",
        _OBJC + "protocol",
    }
)
_PROTOCOLS = frozenset({_SWIFT + "protocol", _OBJC + "protocol"})
_NOT_DOCUMENTED = frozenset({_SWIFT + "var.parameter", _SWIFT + "generic_type_param"})


@dataclass(frozen=True)
class DeclarationType:
    kind: Optional[str]

    @classmethod
    def all(cls):
        """Every documentable kind, in overview order."""
        return [cls(k) for k in _TYPES if cls(k).should_document]

    @classmethod
    def overview(cls):
        return cls(OVERVIEW_KIND)

    @property
    def name(self):
        if self.is_overview:
            return OVERVIEW_KIND
        entry = _TYPES.get(self.kind)
        return entry[0] if entry else None

    @property
    def plural_name(self):
        entry = _TYPES.get(self.kind)
        return entry[1] if entry else None

    @property
    def is_mark(self):
        return self.kind in (SWIFT_MARK_KIND, OBJC_MARK_KIND)

    @property
    def is_declaration(self):
        return bool(self.kind) and self.kind.startswith(
            ("source.lang.swift.decl", "sourcekitten.source.lang.objc.decl")
        )

    @property
    def should_document(self):
        return self.is_declaration and self.kind not in _NOT_DOCUMENTED

    @property
    def is_extension(self):
        return bool(self.kind) and (
            self.kind.startswith(_SWIFT + "extension") or self.kind == _OBJC + "category"
        )

    @property
    def is_extensible(self):
        return self.kind in _EXTENSIBLE

    @property
    def is_protocol(self):
        return self.kind in _PROTOCOLS

    @property
    def is_overview(self):
        return self.kind == OVERVIEW_KIND

    @property
    def language(self):
        if self.kind and self.kind.startswith("sourcekitten.source.lang.objc"):
            return "objective-c"
        return "swift"


# ── Access control ──


class AccessControlLevel(IntEnum):
    UNKNOWN = 0
    PRIVATE = 1
    FILEPRIVATE = 2
    INTERNAL = 3
    PUBLIC = 4
    OPEN = 5

    @classmethod
    def from_name(cls, name):
        try:
            return cls[str(name).strip().upper()]
        except KeyError:
            raise ValueError(f"unknown access control level: {name!r}") from None

    @classmethod
    def from_accessibility(cls, accessibility):
        prefix = "source.lang.swift.accessibility."
        if not accessibility or not accessibility.startswith(prefix):
            return None
        return cls.__members__.get(accessibility[len(prefix) :].upper())

    @classmethod
    def from_explicit_declaration(cls, declaration):
        if not declaration:
            return None
        m = _ACL_KEYWORD_RE.search(declaration)
        return cls[m.group(1).upper()] if m else None

    @classmethod
    def from_record(cls, record):
        """Derive the level of a record, falling back on ``internal``."""
        acl = cls.from_accessibility(record.accessibility)
        if acl is None:
            acl = cls.from_explicit_declaration(record.doc_declaration or record.parsed_declaration)
        return acl if acl is not None else cls.INTERNAL


# fileprivate must win over private, hence the alternation order
_ACL_KEYWORD_RE = re.compile(r"\b(fileprivate|private|internal|public|open)\s")


# ── Marks ──


class SourceMark:
    """A ``// MARK: - Name -`` divider; the dashes are optional."""

    PREFIX = "MARK: "

    def __init__(self, mark_string=None):
        self.name = None
        self.has_start_dash = False
        self.has_end_dash = False
        if mark_string is None:
            return
        if mark_string.startswith(self.PREFIX):
            mark_string = mark_string[len(self.PREFIX) :]
        self.has_start_dash = mark_string.startswith("- ")
        self.has_end_dash = mark_string.endswith(" -")
        start = 2 if self.has_start_dash else 0
        end = len(mark_string) - 2 if self.has_end_dash else len(mark_string)
        self.name = mark_string[start:end] if end > start else ""

    def __repr__(self):
        return f"SourceMark({self.name!r})"


EXTENSION_MEMBERS_MARK = "- Extension Members"


# ── Declarations ──


@dataclass
class Parameter:
    name: str
    discussion: Optional[str] = None


@dataclass(eq=False)
class Declaration:
    type: DeclarationType
    name: Optional[str] = None
    typename: Optional[str] = None
    usr: Optional[str] = None
    file: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None
    start_line: Optional[int] = None
    end_line: Optional[int] = None
    access_control_level: AccessControlLevel = AccessControlLevel.UNKNOWN
    mark: SourceMark = field(default_factory=SourceMark)
    abstract: str = ""
    discussion: str = ""
    parameters: list[Parameter] = field(default_factory=list)
    return_discussion: Optional[str] = None
    declaration: str = ""
    default_impl_abstract: Optional[str] = None
    url: Optional[str] = None
    children: list[Declaration] = field(default_factory=list)

    def walk(self):
        """Yield this declaration and all descendants, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()
