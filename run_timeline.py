#!/usr/bin/env python3
"""Render a GitHub Actions workflow run as a Mermaid gantt chart."""

from __future__ import annotations

import sys

from ci_gantt.runner import main

if __name__ == "__main__":
    sys.exit(main())
