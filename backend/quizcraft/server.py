"""Command-line entry point that starts the QuizCraft HTTP server.

Usage: quizcraft [--port PORT] [--debug] [--log-target NAME[:LEVEL] ...]

`NAME` is `stdout`, `stderr` or a file path; `LEVEL` defaults to INFO.
"""

import argparse
import logging
import sys
from typing import List, Optional, Sequence, Tuple

from . import __version__

logger = logging.getLogger("quizcraft.server")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def parse_log_target(target: str) -> Tuple[str, int]:
    """Split `NAME[:LEVEL]` into a target name and a logging level.

    Only the last colon separates the level, so Windows paths such as
    `C:\\logs\\app.log` stay intact when no level is given.
    """
    name, sep, level_name = target.rpartition(":")
    if not sep or not name:
        return target, logging.INFO
    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        # not a level: keep the whole string as the name
        return target, logging.INFO
    return name, level


def build_handler(name: str, level: int) -> logging.Handler:
    if name == "stdout":
        handler: logging.Handler = logging.StreamHandler(sys.stdout)
    elif name == "stderr":
        handler = logging.StreamHandler(sys.stderr)
    else:
        handler = logging.FileHandler(name, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def configure_logging(debug: bool = False, targets: Sequence[str] = (), level: str = "INFO") -> List[logging.Handler]:
    """Install a console handler plus one handler per log target.

    The console logs at `level` (a level name such as `WARNING`), or at
    DEBUG when `debug` is set.
    """
    root = logging.getLogger()
    console_level = logging.getLevelName(level.upper())
    if not isinstance(console_level, int):
        console_level = logging.INFO
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.DEBUG if debug else console_level)
    console.setFormatter(logging.Formatter(LOG_FORMAT))
    handlers = [console]
    for target in targets:
        handlers.append(build_handler(*parse_log_target(target)))
    for h in handlers:
        root.addHandler(h)
    root.setLevel(min(h.level for h in handlers))
    return handlers


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="quizcraft", description="QuizCraft backend server")
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument("-p", "--port", type=int, default=3000, help="Port to listen on")
    parser.add_argument("--host", default="0.0.0.0", help="Interface to bind")
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-target", action="append", default=[], metavar="NAME[:LEVEL]",
                        help="Add a log target (stdout, stderr or a file path)")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        from .config import settings
    except RuntimeError:
        configure_logging(args.debug, args.log_target)
        logger.exception("Failed to start server")
        return 1
    configure_logging(args.debug, args.log_target, settings.LOG_LEVEL)
    logger.debug("using port %s", args.port)
    try:
        import uvicorn
        from .main import app
        logger.info("Server is running on port %s", args.port)
        uvicorn.run(app, host=args.host, port=args.port, log_config=None)
    except KeyboardInterrupt:
        pass
    except Exception:
        logger.exception("Failed to start server")
        return 1
    logger.info("Stopping the server...")
    return 0


if __name__ == "__main__":
    sys.exit(main())
