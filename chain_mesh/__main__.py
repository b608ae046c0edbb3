"""Allow ``python -m chain_mesh`` to launch the mesh."""

from __future__ import annotations

import sys

from chain_mesh import run


def main() -> None:
    raise SystemExit(run(sys.argv[1:]))


if __name__ == "__main__":
    main()
