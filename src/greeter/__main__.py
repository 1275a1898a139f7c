#!/usr/bin/env python3
"""
vimgreet Greeter - CLI Entry Point

Run with:
    python -m greeter
    vimgreet-greeter

Or as the greetd default_session command.
"""

import sys
from .cli import main

if __name__ == "__main__":
    sys.exit(main())
