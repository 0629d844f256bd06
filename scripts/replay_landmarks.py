#!/usr/bin/env python3
"""CLI for replaying recorded landmark frames through the mask tracker."""

from __future__ import annotations

from maskbooth.replay import main

if __name__ == "__main__":
    main()
