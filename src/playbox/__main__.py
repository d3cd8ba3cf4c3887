import sys
import argparse
import asyncio

from playbox.bootstrap import create_playground, install_toolchain, make_test_module
from playbox.config.config import load_config
from playbox.errors import PlayboxError
from playbox.gateway.server import start_gateway
from playbox.logging.diagnostic import configure_logging
from playbox.process.sink import TerminalConsole


async def run_task(task: str, settings) -> int:
    console = TerminalConsole(settings.console_history_lines, settings.subscriber_queue_size)
    playground = create_playground(settings, console)
    await playground.prepare()

    if task == "build":
        step = playground.build()
    elif task == "run":
        step = playground.build_then_run()
    else:
        step = playground.format_then_reload()

    try:
        await step
    except PlayboxError:
        return 1
    return 0


async def async_main():
    parser = argparse.ArgumentParser(description="Playbox toolchain playground")
    parser.add_argument("--install", action="store_true", help="Fetch and extract the toolchain archive first")
    parser.add_argument("--archive", type=str, help="Archive URL or path (overrides PLAYBOX_ARCHIVE_URL)")
    parser.add_argument("--test-module", type=str, metavar="DIR", help="Write a hello-world test module into DIR")
    parser.add_argument("--task", choices=["build", "run", "fmt"], help="Run a single pipeline step from CLI")
    parser.add_argument("--port", type=int, default=None, help="Port to run the gateway on")
    args = parser.parse_args()

    settings = load_config()
    configure_logging(settings.log_level)
    if args.archive:
        settings.archive_url = args.archive

    if args.install:
        written = await install_toolchain(settings)
        sys.stderr.write(f"Installed {len(written)} entries into {settings.toolchain_dir}\n")

    if args.test_module:
        make_test_module(args.test_module)

    if args.task:
        return await run_task(args.task, settings)

    if args.install or args.test_module:
        return 0

    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, start_gateway, args.port or settings.gateway_port, settings)
    return 0

def main():
    try:
        code = asyncio.run(async_main())
    except KeyboardInterrupt:
        sys.stderr.write("\n")
        sys.exit(1)
    except Exception as e:
        sys.stderr.write(f"Fatal: {e}\n")
        sys.exit(1)
    sys.exit(code)

if __name__ == "__main__":
    main()
