"""Module entrypoint.

Why it exists:
- Runs the CLI with `python -m main` from inside `src/` during development.
- Keeps a simple entrypoint next to the `skilldo` console script.
"""

from __future__ import annotations

import sys

# Windows consoles default to cp1252; SKILL.md output and rich tables are UTF-8.
if sys.platform == "win32":
    sys.stdout.reconfigure(encoding="utf-8")
    sys.stderr.reconfigure(encoding="utf-8")

from cli.main import run


def main() -> None:
    run()


if __name__ == "__main__":
    main()
