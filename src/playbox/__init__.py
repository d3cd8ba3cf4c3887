# Package Root
from playbox.archive.extractor import extract
from playbox.archive.guard import validate_zip_path
from playbox.bootstrap import create_playground, install_toolchain
from playbox.process.future import CommandFuture, new_future, then
from playbox.process.runner import SingleFlightRunner
from playbox.process.sink import Console, OutputSink
