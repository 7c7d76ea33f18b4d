import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from pcode.pcode_runtime import ScriptRunner, PcodeHost
from pcode.pcode_parser import parse
from pcode.pcode_printer import Printer, ensure_displayable
from pcode.pcode_serialize import serialize
from pcode.pcode_datatypes import PcodeError

async def ainput(prompt: str) -> str:
    """Reads one line from stdin off the event loop. Returns "" at end of input."""
    print(prompt, end="", flush=True)
    return await asyncio.to_thread(sys.stdin.readline)


class ConsoleHost(PcodeHost):
    """Prints DISPLAY output as it happens and reads INPUT from stdin."""

    def display(self, text: str) -> None:
        print(text)

    async def input(self, prompt: str) -> str:
        line = await ainput(f"{prompt}: ")
        return line.rstrip("\n")


def print_value(value, fmt: Optional[str] = None):
    """Prints the final value of a program, or nothing when it has none.

    Functions and lambdas have no printed form; they raise CoercionError.
    """
    if value == []:
        return
    ensure_displayable(value)
    if fmt:
        print(serialize(value, fmt=fmt).rstrip("\n"))
    else:
        print(Printer().pformat(value))


def parse_args(argv: List[str]):
    """Returns (file, fmt, ast_only). Unknown flags exit with status 2."""
    file_path = None
    fmt = None
    ast_only = False
    args = list(argv)
    while args:
        arg = args.pop(0)
        if arg == "--ast":
            ast_only = True
        elif arg == "--format":
            if not args or args[0] not in ("json", "yaml"):
                print("Error: --format takes json or yaml", file=sys.stderr)
                raise SystemExit(2)
            fmt = args.pop(0)
        elif arg.startswith("-"):
            print(f"Error: unknown option {arg}", file=sys.stderr)
            raise SystemExit(2)
        else:
            file_path = arg
    return file_path, fmt, ast_only


async def run_script_file(file_path: str, fmt: Optional[str] = None, ast_only: bool = False):
    """Run a pcode script file non-interactively and exit with appropriate status."""
    p = Path(file_path)
    try:
        source = p.read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)

    if ast_only:
        try:
            print(Printer().pformat_program(parse(source)))
        except PcodeError as e:
            print(f"{e.kind}: {e.message}", file=sys.stderr)
            raise SystemExit(1)
        return

    runner = ScriptRunner(host_object=ConsoleHost())
    result = await runner.handle_script(source)
    if result.status == 'error':
        print(result.format_error(), file=sys.stderr)
        raise SystemExit(1)
    try:
        print_value(result.value, fmt)
    except PcodeError as e:
        print(f"{e.kind}: {e.message}", file=sys.stderr)
        raise SystemExit(1)


async def main(argv: Optional[List[str]] = None):
    """Run a script file when provided, otherwise start the interactive REPL."""
    file_path, fmt, ast_only = parse_args(sys.argv[1:] if argv is None else argv)
    if file_path is not None:
        await run_script_file(file_path, fmt, ast_only)
        return

    print("pcode REPL v0.1")
    print("Type 'exit' or press Ctrl+D to quit.")

    # Every line is its own program; nothing carries over between lines.
    runner = ScriptRunner(host_object=ConsoleHost())

    # REPL Loop
    while True:
        try:
            raw = await ainput(">> ")
            if raw == "":
                raise EOFError
            line = raw.strip()

            if not line:
                continue
            if line == "exit":
                break

            if ast_only:
                print(Printer().pformat_program(parse(line)))
                continue

            result = await runner.handle_script(line)

            if result.status == 'error':
                # Pretty, location-aware message
                print(result.format_error(), file=sys.stderr)
                continue

            print_value(result.value, fmt)

        except EOFError:
            print("\nExiting.")
            break
        except PcodeError as e:
            print(f"{e.kind}: {e.message}", file=sys.stderr)

if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nExiting.")
