#!/usr/bin/env python3
"""
Entry point for running the bridge as a module.

Usage:
    python -m vmixapc --config show.yaml [--api-addr 127.0.0.1:8099]
"""

from vmixapc.bridge import main

main()
