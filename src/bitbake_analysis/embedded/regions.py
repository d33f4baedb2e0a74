"""Classification of a recipe into shell, Python and native BitBake regions.

Region nodes come from the ``bitbake_regions`` tree-sitter query:

- shell task bodies: ``do_install() {`` ... ``}``;
- Python task bodies: ``python do_foo() {``, ``python() {`` and
  ``python __anonymous() {`` ... ``}``;
- top-level Python ``def`` blocks;
- inline Python expansions ``${@ ... }``.

Only the outermost region node is kept, so regions are never nested. The text
of a region is the delimited body with blank delimiter lines dropped; Python
bodies are dedented by their common indentation.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from tree_sitter import Node, Tree

from bitbake_analysis.core.ast import load_query, parse_source, query_captures
from bitbake_analysis.models import EmbeddedLanguage, EmbeddedRegion, Point

_INLINE_PYTHON_OPENER = b"${@"

# Region nodes whose whole span is the region text
_VERBATIM_NODE_TYPES = frozenset({"python_function_definition"})


@dataclass
class _Segment:
    row: int
    column: int
    content: bytes


@dataclass
class _RegionDraft:
    language: EmbeddedLanguage
    start: Point
    end: Point
    text: str
    first_line_offset: int
    indent: int


def _leading_whitespace(content: bytes) -> int:
    return len(content) - len(content.lstrip(b" \t"))


def _common_indent(segments: Iterable[_Segment]) -> int:
    indents = [_leading_whitespace(s.content) for s in segments if s.content.strip()]
    return min(indents) if indents else 0


def _body_bounds(node: Node, source: bytes) -> tuple[tuple[int, int], tuple[int, int]] | None:
    """Return the host span between a region node's delimiters."""
    if node.type in _VERBATIM_NODE_TYPES:
        return node.start_point, node.end_point

    if node.type == "inline_python":
        row, column = node.start_point
        start = (row, column + len(_INLINE_PYTHON_OPENER))
    else:
        opener = next((child for child in node.children if child.type == "{"), None)
        if opener is None:
            return None
        start = opener.end_point

    closer = node.children[-1] if node.children else None
    if closer is not None and closer.type == "}" and not closer.is_missing:
        return start, closer.start_point
    if source[node.end_byte - 1 : node.end_byte] == b"}":
        row, column = node.end_point
        return start, (row, column - 1)
    return start, node.end_point


def _segments(lines: Sequence[bytes], start: tuple[int, int], end: tuple[int, int]) -> list[_Segment]:
    (start_row, start_column), (end_row, end_column) = start, end
    segments = []
    for row in range(start_row, min(end_row, len(lines) - 1) + 1):
        line = lines[row]
        first = start_column if row == start_row else 0
        last = end_column if row == end_row else len(line)
        segments.append(_Segment(row, first, line[first:last].rstrip(b"\r")))
    return segments


def _shape(language: EmbeddedLanguage, segments: list[_Segment], dedent: bool) -> _RegionDraft | None:
    if not segments:
        return None
    if len(segments) > 1 and not segments[-1].content.strip():
        segments = segments[:-1]
    keep_head = bool(segments[0].content.strip())
    if not keep_head:
        segments = segments[1:]
    if not any(s.content.strip() for s in segments):
        return None

    if keep_head:
        head, body = segments[0], segments[1:]
        skip = _leading_whitespace(head.content)
        offset = head.column + skip
        indent = _common_indent(body) if dedent else 0
        pieces = [head.content[skip:], *(s.content[indent:] for s in body)]
        start = Point(row=head.row, column=offset)
    else:
        indent = _common_indent(segments) if dedent else 0
        offset = indent
        pieces = [s.content[indent:] for s in segments]
        start = Point(row=segments[0].row, column=0)

    pieces[-1] = pieces[-1].rstrip()
    last_column = (offset if len(pieces) == 1 else indent) + len(pieces[-1])
    end = Point(row=segments[-1].row, column=last_column)
    text = b"\n".join(pieces).decode("utf-8", errors="replace")
    return _RegionDraft(language, start, end, text, offset, indent)


def _outermost(captures: list[tuple[str, Node]]) -> list[tuple[EmbeddedLanguage, Node]]:
    ordered = sorted(captures, key=lambda capture: (capture[1].start_byte, -capture[1].end_byte))
    kept: list[tuple[EmbeddedLanguage, Node]] = []
    covered_until = -1
    for name, node in ordered:
        if node.start_byte < covered_until:
            continue
        kept.append((EmbeddedLanguage(name), node))
        covered_until = node.end_byte
    return kept


def classify_regions(text: str, tree: Tree | None = None) -> list[EmbeddedRegion]:
    """Return the embedded regions of a recipe ordered by start position.

    ``tree`` must be the parse of ``text``; the text is parsed when it is
    omitted. Indices are ordinal per language, so a region keeps its index
    across passes as long as the regions before it do not change.
    """
    source = text.encode("utf-8")
    if tree is None:
        tree = parse_source(source)
    lines = source.split(b"\n")

    drafts: list[_RegionDraft] = []
    for language, node in _outermost(query_captures(load_query("regions"), tree.root_node)):
        bounds = _body_bounds(node, source)
        if bounds is None:
            continue
        dedent = language is EmbeddedLanguage.PYTHON and node.type not in _VERBATIM_NODE_TYPES
        draft = _shape(language, _segments(lines, *bounds), dedent)
        if draft is not None:
            drafts.append(draft)

    counters = {language: 0 for language in EmbeddedLanguage}
    regions: list[EmbeddedRegion] = []
    for draft in drafts:
        regions.append(
            EmbeddedRegion(
                language=draft.language,
                start=draft.start,
                end=draft.end,
                index=counters[draft.language],
                text=draft.text,
                first_line_offset=draft.first_line_offset,
                indent=draft.indent,
            )
        )
        counters[draft.language] += 1
    return regions


def region_at(
    regions: Iterable[EmbeddedRegion],
    point: Point,
    language: EmbeddedLanguage | None = None,
) -> EmbeddedRegion | None:
    for region in regions:
        if language is not None and region.language is not language:
            continue
        if region.contains(point):
            return region
    return None


def is_inside_shell_region(regions: Iterable[EmbeddedRegion], point: Point) -> bool:
    return region_at(regions, point, EmbeddedLanguage.SHELL) is not None


def is_inside_python_region(regions: Iterable[EmbeddedRegion], point: Point) -> bool:
    return region_at(regions, point, EmbeddedLanguage.PYTHON) is not None
