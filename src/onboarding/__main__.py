#!/usr/bin/env python3
"""
vimgreet Onboarding Wizard - CLI Entry Point

Run with:
    python -m onboarding
    vimgreet-onboard

Or as the greetd initial_session command on first boot.
"""

import sys
from .cli import main

if __name__ == "__main__":
    sys.exit(main())
