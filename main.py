#!/usr/bin/env python3
"""PomoGuard — entry point.

Run with:
    python main.py
    python -m pomoguard
"""

from pomoguard.__main__ import main


if __name__ == "__main__":
    main()
