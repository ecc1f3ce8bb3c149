#!/usr/bin/env python3
"""Convenience runner for the territory capture engine.

Usage:
    python run.py replay walk.gpx
"""
import logging
from territory_capture.main import main

if __name__ == "__main__":
    if not logging.getLogger().hasHandlers():
        logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s %(name)s: %(message)s")
    raise SystemExit(main())
