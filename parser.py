from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from lexer import PPPSyntaxError, Token


@dataclass
class SourceLocation:
    file: str
    line: int
    column: int
    statement: str


@dataclass
class Node:
    location: SourceLocation


@dataclass
class Program(Node):
    statements: List["Statement"]


class Statement(Node):
    pass


@dataclass
class Block(Node):
    statements: List[Statement]


@dataclass
class Declaration(Statement):
    name: str


@dataclass
class WriteStatement(Statement):
    args: List["Expression"]
    newline: bool


@dataclass
class RepeatStatement(Statement):
    count: "Expression"
    block: Block


@dataclass
class Assignment(Statement):
    target: str
    operator: str
    value: "Expression"


class Expression(Node):
    pass


@dataclass
class Literal(Expression):
    value: Union[int, str]
    literal_type: str
    raw: str


@dataclass
class Identifier(Expression):
    name: str


def find_block_end(tokens: Sequence[Token], start: int, filename: str = "<string>") -> int:
    """Return the index just past the RBRACE matching an already consumed LBRACE.

    ``start`` is the index immediately after the opening brace. Nested blocks
    are skipped by depth counting.
    """
    depth = 1
    index = start
    n = len(tokens)
    while index < n:
        token_type = tokens[index].type
        if token_type == "LBRACE":
            depth += 1
        elif token_type == "RBRACE":
            depth -= 1
            if depth == 0:
                return index + 1
        index += 1
    line = tokens[-1].line if tokens else 0
    raise PPPSyntaxError(f"Repeat block not closed at {filename}:{line}", line=line)


class Parser:
    def __init__(self, tokens: List[Token], filename: str, source_lines: List[str]):
        self.tokens = tokens
        self.filename = filename
        self.source_lines = source_lines
        self.index = 0

    def parse(self) -> Program:
        try:
            statements: List[Statement] = self._parse_statements(end=len(self.tokens))
        except RecursionError:
            token = self.tokens[min(self.index, len(self.tokens) - 1)]
            raise PPPSyntaxError(
                f"Blocks nested too deeply at {self.filename}:{token.line}", line=token.line
            ) from None
        if self.tokens:
            location = self._location_from_token(self.tokens[0])
        else:
            location = SourceLocation(file=self.filename, line=1, column=1, statement="")
        return Program(location=location, statements=statements)

    def _parse_statements(self, end: int) -> List[Statement]:
        statements: List[Statement] = []
        while self.index < end:
            if self._match("SEMI"):
                continue
            statements.append(self._parse_statement(end))
        return statements

    def _parse_statement(self, end: int) -> Statement:
        token = self._peek()
        if token.type == "KEYWORD":
            if token.value == "number":
                return self._parse_declaration(end)
            if token.value == "write":
                return self._parse_write(end)
            if token.value == "repeat":
                return self._parse_repeat(end)
        if token.type == "IDENT":
            return self._parse_assignment(end)
        raise self._error(f"Unexpected token '{token.value}'", token)

    def _parse_declaration(self, end: int) -> Declaration:
        keyword = self._advance()
        name = self._peek_within(end)
        if name is None or name.type != "IDENT":
            raise self._error("Variable name expected after 'number'", keyword)
        self.index += 1
        self._expect_terminator(end, "number declaration", keyword)
        return Declaration(location=self._location_from_token(keyword), name=name.value)

    def _parse_write(self, end: int) -> WriteStatement:
        keyword = self._advance()
        args: List[Expression] = []
        newline = False
        while True:
            token = self._peek_within(end)
            if token is None or token.type == "SEMI":
                break
            if token.type == "KEYWORD" and token.value == "newline":
                newline = True
            elif token.type == "KEYWORD" and token.value == "and":
                pass
            elif token.type in ("NUMBER", "STRING", "IDENT"):
                args.append(self._parse_operand(token))
            else:
                raise self._error("Invalid write argument", keyword)
            self.index += 1
        self._expect_terminator(end, "write command", keyword)
        return WriteStatement(location=self._location_from_token(keyword), args=args, newline=newline)

    def _parse_repeat(self, end: int) -> RepeatStatement:
        keyword = self._advance()
        count_token = self._peek_within(end)
        if count_token is None:
            raise self._error("Missing expression after 'repeat'", keyword)
        if count_token.type not in ("NUMBER", "IDENT"):
            raise self._error("Number or variable expected after 'repeat'", keyword)
        count = self._parse_operand(count_token)
        self.index += 1

        times = self._peek_within(end)
        if times is None or times.type != "KEYWORD" or times.value != "times":
            raise self._error("'times' expected after 'repeat'", keyword)
        self.index += 1

        opening = self._peek_within(end)
        if opening is None:
            raise self._error("Missing command after 'repeat'", keyword)
        if opening.type != "LBRACE":
            raise self._error("Repeat block not opened", keyword)
        self.index += 1

        block_end = find_block_end(self.tokens, self.index, self.filename)
        statements = self._parse_statements(end=block_end - 1)
        self.index = block_end
        block = Block(location=self._location_from_token(opening), statements=statements)
        return RepeatStatement(location=self._location_from_token(keyword), count=count, block=block)

    def _parse_assignment(self, end: int) -> Assignment:
        target = self._advance()
        operator = self._peek_within(end)
        if operator is None or operator.type != "OPERATOR":
            raise self._error("Assignment operator expected", target)
        self.index += 1
        value_token = self._peek_within(end)
        if value_token is None:
            raise self._error("Missing value after assignment", target)
        if value_token.type not in ("NUMBER", "IDENT"):
            raise self._error("Number or variable expected after assignment operator", target)
        value = self._parse_operand(value_token)
        self.index += 1
        self._expect_terminator(end, "assignment command", target)
        return Assignment(
            location=self._location_from_token(target),
            target=target.value,
            operator=operator.value,
            value=value,
        )

    def _parse_operand(self, token: Token) -> Expression:
        location = self._location_from_token(token)
        if token.type == "NUMBER":
            return Literal(location=location, value=int(token.value), literal_type="INT", raw=token.value)
        if token.type == "STRING":
            return Literal(location=location, value=token.value, literal_type="STR", raw=token.value)
        return Identifier(location=location, name=token.value)

    def _expect_terminator(self, end: int, context: str, start: Token) -> None:
        token = self._peek_within(end)
        if token is None or token.type != "SEMI":
            raise self._error(f"Missing ';' at the end of {context}", start)
        self.index += 1

    def _error(self, message: str, token: Token) -> PPPSyntaxError:
        return PPPSyntaxError(f"{message} at {self.filename}:{token.line}", line=token.line)

    def _match(self, token_type: str) -> bool:
        if self._peek().type == token_type:
            self.index += 1
            return True
        return False

    def _advance(self) -> Token:
        token = self._peek()
        self.index += 1
        return token

    def _peek(self) -> Token:
        return self.tokens[self.index]

    def _peek_within(self, end: int) -> Optional[Token]:
        if self.index >= end:
            return None
        return self.tokens[self.index]

    def _location_from_token(self, token: Token) -> SourceLocation:
        line_index = token.line - 1
        statement = ""
        if 0 <= line_index < len(self.source_lines):
            statement = self.source_lines[line_index].strip()
        return SourceLocation(file=self.filename, line=token.line, column=token.column, statement=statement)
