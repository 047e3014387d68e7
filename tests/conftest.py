"""Pytest configuration for all tests."""

import os
import sys

# Make `src.dealflow` importable without an editable install
root_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if root_dir not in sys.path:
    sys.path.insert(0, root_dir)
