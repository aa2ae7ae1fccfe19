"""Entry point for the compiler wrapper; the persona comes from ``argv[0]``."""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping, Sequence

from wasixcc import engine
from wasixcc.errors import SubprocessFailureError, WasixccError
from wasixcc.executor import Executor
from wasixcc.observability import LOGGER_NAME, configure_logging
from wasixcc.sysroot import Acquirer


def main(
    argv: Sequence[str] | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    executor: Executor | None = None,
    acquirer: Acquirer | None = None,
) -> int:
    argv = list(sys.argv if argv is None else argv)
    invoked_name, args = (argv[0], argv[1:]) if argv else ("wasixcc", [])

    try:
        config, _ = engine.load_config(args, environ)
        configure_logging(config.string("LOG_LEVEL"))
        return engine.run(
            invoked_name,
            args,
            environ=environ,
            executor=executor,
            acquirer=acquirer,
        )
    except SubprocessFailureError as exc:
        # The tool has already reported its own diagnostics.
        logging.getLogger(LOGGER_NAME).debug(str(exc))
        return exc.exit_status
    except WasixccError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return exc.exit_status


if __name__ == "__main__":
    raise SystemExit(main())
