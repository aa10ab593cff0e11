"""
Request recognizer.

Confirms that a request starts with ``GET `` and skips everything up to the
first blank line. Headers are never looked at. A line counts as blank when
its first byte is CR or LF, so a lone ``\\n`` after the request line ends the
request as well as ``\\r\\n``.

    (state, byte) -> (state, action)

The state is a small immutable value stored on the connection between reads.
"""
import enum
from typing import NamedTuple, Tuple


METHOD = b'GET'
SPACE = ord(' ')
CR = ord('\r')
LF = ord('\n')


class Phase(enum.Enum):
    METHOD = 'expect_method'
    SPACE = 'expect_space'
    REQUEST_LINE = 'skip_request_line'
    LINE_START = 'after_line_start'
    HEADER_LINE = 'skip_header_line'
    DONE = 'done'


class Action(enum.Enum):
    CONSUME = 'consume'
    REJECT = 'reject'
    COMPLETE = 'complete'


class ParseState(NamedTuple):
    phase: Phase = Phase.METHOD
    index: int = 0


INITIAL = ParseState()


def step(state: ParseState, byte: int, method: bytes = METHOD) -> Tuple[ParseState, Action]:
    phase = state.phase
    if phase is Phase.METHOD:
        if byte != method[state.index]:
            return state, Action.REJECT
        if state.index + 1 == len(method):
            return ParseState(Phase.SPACE), Action.CONSUME
        return ParseState(Phase.METHOD, state.index + 1), Action.CONSUME
    if phase is Phase.SPACE:
        if byte != SPACE:
            return state, Action.REJECT
        return ParseState(Phase.REQUEST_LINE), Action.CONSUME
    if phase is Phase.REQUEST_LINE:
        if byte == LF:
            return ParseState(Phase.LINE_START), Action.CONSUME
        return state, Action.CONSUME
    if phase is Phase.LINE_START:
        if byte == CR or byte == LF:
            return ParseState(Phase.DONE), Action.COMPLETE
        return ParseState(Phase.HEADER_LINE), Action.CONSUME
    if phase is Phase.HEADER_LINE:
        if byte == LF:
            return ParseState(Phase.LINE_START), Action.CONSUME
        return state, Action.CONSUME
    # nothing is accepted after the blank line
    return state, Action.COMPLETE


def feed(state: ParseState, data: bytes, method: bytes = METHOD) -> Tuple[ParseState, Action]:
    """Run ``data`` through the machine.

    Stops at the first byte that rejects or completes the request; whatever
    follows in ``data`` is dropped.
    """
    action = Action.CONSUME
    for byte in data:
        state, action = step(state, byte, method)
        if action is not Action.CONSUME:
            break
    return state, action
