from __future__ import annotations

import sys
from collections.abc import Callable

from tools.guards import must_destroy_guard

Runner = Callable[[list[str]], int]

DEFAULT_ROOTS = ["must_destroy", "tools"]


def run_guards(roots: list[str]) -> int:
    runners: list[Runner] = [
        must_destroy_guard.run,
    ]
    for runner in runners:
        rc = runner(roots)
        if rc != 0:
            return rc
    return 0


def main() -> int:
    return run_guards(sys.argv[1:] or DEFAULT_ROOTS)


if __name__ == "__main__":
    raise SystemExit(main())
