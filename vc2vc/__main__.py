# SPDX-License-Identifier: LGPL-3.0-or-later
# vc2vc/__main__.py
from __future__ import annotations

import logging
import sys
import traceback
from typing import Optional, Sequence

from .cli.args import parse_args_with_config
from .core.exceptions import Fatal
from .orchestrator.orchestrator import Orchestrator

EXIT_INTERRUPTED = 130


def _report(logger: Optional[logging.Logger], level: int, msg: str) -> None:
    # before logging is configured there is only stderr
    if logger is None:
        print(msg, file=sys.stderr)
    else:
        logger.log(level, msg)


def _run(argv: Optional[Sequence[str]]) -> int:
    logger: Optional[logging.Logger] = None
    try:
        args, _conf, logger = parse_args_with_config(argv)
    except Fatal as e:
        # config errors were already logged through U.die()
        if logger is None:
            print(f"💥 ERROR    {e}", file=sys.stderr)
        return e.code

    try:
        result = Orchestrator(logger, args).run()
    except Fatal as e:
        _report(logger, logging.ERROR, str(e))
        return e.code
    except Exception as e:
        _report(logger, logging.ERROR, f"💥 UNHANDLED {type(e).__name__}: {e}")
        _report(logger, logging.DEBUG, traceback.format_exc())
        return 1
    print(result.message)
    return result.exit_code


def main(argv: Optional[Sequence[str]] = None) -> None:
    try:
        rc = _run(argv)
    except KeyboardInterrupt:
        print("Interrupted by user (Ctrl+C).", file=sys.stderr)
        rc = EXIT_INTERRUPTED
    raise SystemExit(rc)


if __name__ == "__main__":
    main()
