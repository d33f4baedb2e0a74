from enum import Enum

from lsprotocol.types import Position as LspPosition
from pydantic import BaseModel, ConfigDict


class Point(BaseModel):
    model_config = ConfigDict(frozen=True)

    row: int
    column: int

    def __lt__(self, other: "Point") -> bool:
        return (self.row, self.column) < (other.row, other.column)

    def __le__(self, other: "Point") -> bool:
        return (self.row, self.column) <= (other.row, other.column)

    @classmethod
    def from_lsp(cls, position: LspPosition) -> "Point":
        return cls(row=position.line, column=position.character)

    def to_lsp(self) -> LspPosition:
        return LspPosition(line=self.row, character=self.column)


class AstNode(BaseModel):
    type: str
    start_byte: int
    end_byte: int
    start_point: Point
    end_point: Point
    is_error: bool = False
    text: str | None = None
    children: list["AstNode"] | None = None


AstNode.model_rebuild()  # necessary for recursive types


class FileAst(BaseModel):
    uri: str
    language: str
    ast: AstNode


class EmbeddedLanguage(str, Enum):
    SHELL = "shell"
    PYTHON = "python"


class EmbeddedRegion(BaseModel):
    """A contiguous span of a recipe executed by another interpreter.

    ``start`` and ``end`` bound the host span owned by the region; ``end`` is
    the position just after its last character. ``first_line_offset`` is the
    host column where ``text`` begins on the first line, and ``indent`` the
    number of columns stripped from every following line.
    """

    model_config = ConfigDict(frozen=True)

    language: EmbeddedLanguage
    start: Point
    end: Point
    index: int
    text: str
    first_line_offset: int = 0
    indent: int = 0

    def contains(self, point: Point) -> bool:
        return self.start <= point <= self.end

    def overlaps(self, other: "EmbeddedRegion") -> bool:
        return self.start < other.end and other.start < self.end


class EmbeddedDocumentInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    uri: str
    language: EmbeddedLanguage
    host_uri: str
    region: EmbeddedRegion

    @property
    def content(self) -> str:
        return self.region.text

    def to_embedded(self, point: Point) -> Point:
        row = point.row - self.region.start.row
        if row == 0:
            column = point.column - self.region.first_line_offset
        else:
            column = point.column - self.region.indent
        return Point(row=max(row, 0), column=max(column, 0))

    def to_host(self, point: Point) -> Point:
        if point.row == 0:
            column = point.column + self.region.first_line_offset
        else:
            column = point.column + self.region.indent
        return Point(row=point.row + self.region.start.row, column=column)


class EmbeddedDocumentsDelta(BaseModel):
    host_uri: str
    added: list[str] = []
    updated: list[str] = []
    removed: list[str] = []

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.updated or self.removed)
