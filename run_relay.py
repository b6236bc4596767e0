#!/usr/bin/env python3
"""
TDD Relay Runner.

Convenience script to run the relay from a source checkout.

Usage:
    python run_relay.py -u <ami user> [-c <channel>]

Or run as module:
    python -m tdd_relay
"""

import sys
import os

# Add python directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'python'))

if __name__ == "__main__":
    from tdd_relay.__main__ import main
    sys.exit(main())
