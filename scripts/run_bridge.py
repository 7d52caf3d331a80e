"""Helper to launch the bridge API from a source checkout."""

from __future__ import annotations

import sys
from pathlib import Path


def main() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(repo_root))

    # Import after sys.path is adjusted
    from bridge.cli import main as run  # type: ignore

    run(sys.argv[1:])


if __name__ == "__main__":
    main()
