from playbox.process.future import CommandFuture, new_future, then
from playbox.process.pipeline import Playground
from playbox.process.runner import RunOutcome, RunState, SingleFlightRunner
from playbox.process.sink import Console, OutputSink, TerminalConsole

__all__ = [
    "CommandFuture", "new_future", "then",
    "Playground",
    "RunOutcome", "RunState", "SingleFlightRunner",
    "Console", "OutputSink", "TerminalConsole",
]
