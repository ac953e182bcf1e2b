from __future__ import annotations
import json
import os
import numpy as np
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, List, Optional

from lexer import PPPError, Lexer, split_lines
from parser import (
    Assignment,
    Declaration,
    Expression,
    Identifier,
    Literal,
    Parser,
    Program,
    RepeatStatement,
    SourceLocation,
    Statement,
    WriteStatement,
)


DEFAULT_WORD_BITS = 32
DEFAULT_HISTORY = 1000

_WORD_DTYPES = {
    8: np.int8,
    16: np.int16,
    32: np.int32,
    64: np.int64,
}


def wrap_word(value: int, bits: Optional[int]) -> int:
    """Reduce ``value`` to a signed two's-complement integer of ``bits`` width.

    ``bits=None`` leaves the value unbounded.
    """
    if bits is None:
        return int(value)
    dtype = _WORD_DTYPES[bits]
    unsigned = np.array([int(value) % (1 << bits)], dtype=np.uint64)
    return int(unsigned.astype(dtype)[0])


class PPPRuntimeError(PPPError):
    """Raised for runtime faults."""

    def __init__(
        self,
        message: str,
        *,
        location: Optional[SourceLocation] = None,
        rule: Optional[str] = None,
    ) -> None:
        super().__init__(message, line=location.line if location else None)
        self.location = location
        self.rule = rule
        self.step_index: Optional[int] = None


class VariableStore:
    def __init__(self, *, max_variables: Optional[int] = None, word_bits: Optional[int] = DEFAULT_WORD_BITS) -> None:
        if word_bits is not None and word_bits not in _WORD_DTYPES:
            raise ValueError(f"word_bits must be one of {sorted(_WORD_DTYPES)} or None")
        if max_variables is not None and max_variables < 0:
            raise ValueError("max_variables must be >= 0")
        self.values: Dict[str, int] = {}
        self.max_variables = max_variables
        self.word_bits = word_bits

    def wrap(self, value: int) -> int:
        return wrap_word(value, self.word_bits)

    def set(self, name: str, value: int, location: Optional[SourceLocation] = None) -> None:
        if name not in self.values and self.max_variables is not None and len(self.values) >= self.max_variables:
            raise PPPRuntimeError(
                f"Too many variables defined (limit {self.max_variables})",
                location=location,
                rule="set",
            )
        self.values[name] = self.wrap(value)

    def get(self, name: str, location: Optional[SourceLocation] = None) -> int:
        try:
            return self.values[name]
        except KeyError:
            where = f" at {location.file}:{location.line}" if location else ""
            raise PPPRuntimeError(f"Undefined variable '{name}'{where}", location=location, rule="get") from None

    def has(self, name: str) -> bool:
        return name in self.values

    def snapshot(self) -> Dict[str, int]:
        return dict(self.values)


@dataclass
class Frame:
    name: str
    frame_id: str
    call_location: Optional[SourceLocation]
    iteration: Optional[int] = None
    iterations: Optional[int] = None


@dataclass
class StateEntry:
    step_index: int
    state_id: str
    frame_id: Optional[str]
    source_location: Optional[SourceLocation]
    env_snapshot: Optional[Dict[str, int]]
    rule: str


class StateLogger:
    def __init__(self, history: Optional[int] = DEFAULT_HISTORY) -> None:
        # Only the most recent entries are retained; long loops would
        # otherwise grow the log without bound.
        self.entries: Deque[StateEntry] = deque(maxlen=history)
        self.next_state_index = 0
        self.frame_last_entry: Dict[str, StateEntry] = {}

    def record(
        self,
        *,
        frame: Optional[Frame],
        location: Optional[SourceLocation],
        rule: str,
        env_snapshot: Optional[Dict[str, int]] = None,
    ) -> StateEntry:
        step_index = self.next_state_index
        entry = StateEntry(
            step_index=step_index,
            state_id=f"s_{step_index:06d}",
            frame_id=frame.frame_id if frame else None,
            source_location=location,
            env_snapshot=env_snapshot,
            rule=rule,
        )
        self.entries.append(entry)
        if frame:
            self.frame_last_entry[frame.frame_id] = entry
        self.next_state_index += 1
        return entry

    def last_entry_for_frame(self, frame_id: str) -> Optional[StateEntry]:
        return self.frame_last_entry.get(frame_id)

    def forget_frame(self, frame_id: str) -> None:
        self.frame_last_entry.pop(frame_id, None)


class Interpreter:
    def __init__(
        self,
        *,
        source: str,
        filename: str,
        verbose: bool = False,
        output_sink: Optional[Callable[[str], None]] = None,
        max_variables: Optional[int] = None,
        word_bits: Optional[int] = DEFAULT_WORD_BITS,
        max_token_length: Optional[int] = None,
        history: Optional[int] = DEFAULT_HISTORY,
    ) -> None:
        self.source = source
        self._source_lines = split_lines(source)
        self.filename = filename if filename == "<string>" else os.path.abspath(filename)
        self.verbose = verbose
        self.output_sink = output_sink or (lambda text: print(text, end=""))
        self.max_token_length = max_token_length
        self.variables = VariableStore(max_variables=max_variables, word_bits=word_bits)
        self.logger = StateLogger(history=history)
        self.logger.record(frame=None, location=None, rule="SEED")
        self.call_stack: List[Frame] = []
        self.frame_counter = 0
        self.statements_executed = 0

    def parse(self) -> Program:
        lexer = Lexer(self.source, self.filename, max_token_length=self.max_token_length)
        tokens = lexer.tokenize()
        parser = Parser(tokens, self.filename, self._source_lines)
        return parser.parse()

    def run(self) -> None:
        program = self.parse()
        global_frame = self._new_frame("<top-level>", None)
        self.call_stack.append(global_frame)
        try:
            self._execute_block(program.statements)
        except PPPRuntimeError as error:
            error.step_index = self.logger.next_state_index - 1
            raise
        except RecursionError:
            loc = self.logger.entries[-1].source_location if self.logger.entries else None
            error = PPPRuntimeError("Blocks nested too deeply", location=loc, rule="repeat")
            error.step_index = self.logger.next_state_index - 1
            raise error from None
        except Exception as exc:
            # Surface interpreter bugs through the same traceback path as
            # language-level faults.
            loc = self.logger.entries[-1].source_location if self.logger.entries else None
            wrapped = PPPRuntimeError(f"Internal interpreter error: {exc}", location=loc, rule="internal")
            wrapped.step_index = self.logger.next_state_index - 1
            raise wrapped from exc
        else:
            self.call_stack.pop()
            self.logger.forget_frame(global_frame.frame_id)

    def _execute_block(self, statements: List[Statement]) -> None:
        execute_stmt = self._execute_statement
        for statement in statements:
            execute_stmt(statement)

    def _execute_statement(self, statement: Statement) -> None:
        self._log_step(rule=statement.__class__.__name__, location=statement.location)
        self.statements_executed += 1
        if isinstance(statement, Declaration):
            self.variables.set(statement.name, 0, statement.location)
            return
        if isinstance(statement, WriteStatement):
            self._execute_write(statement)
            return
        if isinstance(statement, RepeatStatement):
            self._execute_repeat(statement)
            return
        if isinstance(statement, Assignment):
            self._execute_assignment(statement)
            return
        raise PPPRuntimeError("Unsupported statement", location=statement.location)

    def _execute_write(self, statement: WriteStatement) -> None:
        emit = self.output_sink
        for arg in statement.args:
            if isinstance(arg, Literal):
                emit(arg.raw)
            else:
                emit(str(self._evaluate(arg)))
        if statement.newline:
            emit("\n")

    def _execute_repeat(self, statement: RepeatStatement) -> None:
        count = self._evaluate(statement.count)
        counter = statement.count.name if isinstance(statement.count, Identifier) else None
        name = f"repeat@{statement.location.line}"
        for iteration in range(1, count + 1):
            frame = self._new_frame(name, statement.location, iteration=iteration, iterations=count)
            self.call_stack.append(frame)
            self._execute_block(statement.block.statements)
            self.call_stack.pop()
            self.logger.forget_frame(frame.frame_id)
            # The counter variable counts down once per pass; the number of
            # passes stays fixed at the value read on entry.
            if counter is not None:
                variables = self.variables
                variables.set(counter, variables.get(counter, statement.location) - 1, statement.location)

    def _execute_assignment(self, statement: Assignment) -> None:
        value = self._evaluate(statement.value)
        variables = self.variables
        location = statement.location
        if statement.operator == ":=":
            variables.set(statement.target, value, location)
        elif statement.operator == "+=":
            variables.set(statement.target, variables.get(statement.target, location) + value, location)
        else:
            variables.set(statement.target, variables.get(statement.target, location) - value, location)

    def _evaluate(self, expression: Expression) -> int:
        if isinstance(expression, Literal):
            return self.variables.wrap(int(expression.value))
        return self.variables.get(expression.name, expression.location)

    def _new_frame(
        self,
        name: str,
        call_location: Optional[SourceLocation],
        *,
        iteration: Optional[int] = None,
        iterations: Optional[int] = None,
    ) -> Frame:
        frame_id = f"f_{self.frame_counter:04d}"
        self.frame_counter += 1
        return Frame(
            name=name,
            frame_id=frame_id,
            call_location=call_location,
            iteration=iteration,
            iterations=iterations,
        )

    def _log_step(self, *, rule: str, location: Optional[SourceLocation]) -> None:
        frame = self.call_stack[-1] if self.call_stack else None
        env_snapshot = self.variables.snapshot() if self.verbose else None
        self.logger.record(frame=frame, location=location, rule=rule, env_snapshot=env_snapshot)


@dataclass
class TracebackFrame:
    name: str
    location: Optional[SourceLocation]
    state_entry: Optional[StateEntry]
    iteration: Optional[int] = None
    iterations: Optional[int] = None

    @property
    def label(self) -> str:
        if self.iteration is None:
            return self.name
        return f"{self.name} (iteration {self.iteration} of {self.iterations})"

    def to_dict(self, index: int) -> Dict[str, Any]:
        data: Dict[str, Any] = {"frame_index": index, "name": self.name}
        if self.iteration is not None:
            data["iteration"] = self.iteration
            data["iterations"] = self.iterations
        if self.location:
            data["source_location"] = {
                "file": self.location.file,
                "line": self.location.line,
                "statement": self.location.statement,
            }
        entry = self.state_entry
        if entry:
            data.update(state_id=entry.state_id, step_index=entry.step_index, rule=entry.rule)
            if entry.env_snapshot is not None:
                data["env_snapshot"] = entry.env_snapshot
        return data


class TracebackFormatter:
    """Renders the interpreter's call stack, one frame per active loop pass."""

    def __init__(self, interpreter: Interpreter) -> None:
        self.interpreter = interpreter

    def build_frames(self) -> List[TracebackFrame]:
        last_entry = self.interpreter.logger.last_entry_for_frame
        frames: List[TracebackFrame] = []
        for frame in self.interpreter.call_stack:
            entry = last_entry(frame.frame_id)
            frames.append(
                TracebackFrame(
                    name=frame.name,
                    location=entry.source_location if entry else frame.call_location,
                    state_entry=entry,
                    iteration=frame.iteration,
                    iterations=frame.iterations,
                )
            )
        return frames

    def format_text(self, error: PPPRuntimeError, verbose: bool) -> str:
        lines = ["Traceback (most recent call last):"]
        for frame in self.build_frames():
            location = frame.location
            if location is None:
                lines.append(f"  <unknown location> in {frame.label}")
            else:
                lines.append(f"  File \"{location.file}\", line {location.line}, in {frame.label}")
                if location.statement:
                    lines.append(f"    {location.statement}")
            entry = frame.state_entry
            if entry is None:
                continue
            lines.append(f"    State log index: {entry.step_index}  State id: {entry.state_id}")
            if verbose and entry.env_snapshot is not None:
                snapshot = ", ".join(f"{k}={v}" for k, v in entry.env_snapshot.items())
                lines.append(f"    Env snapshot: {snapshot}")
        lines.append(f"{error.__class__.__name__}: {error.message} (rule: {error.rule or 'runtime'})")
        return "\n".join(lines)

    def to_json(self, error: PPPRuntimeError) -> str:
        data = {
            "error": {
                "type": error.__class__.__name__,
                "message": error.message,
                "failing_step_index": error.step_index,
            },
            "traceback": [frame.to_dict(index) for index, frame in enumerate(self.build_frames())],
        }
        return json.dumps(data, indent=2)
