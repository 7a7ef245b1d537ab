from __future__ import annotations

from devloop.cli import main

if __name__ == "__main__":
    main()
