#!/usr/bin/env python3
"""
Convenience entry point for running appointmentplanner directly.

Usage: python -m appointmentplanner [command] [options]
"""

from appointmentplanner.cli.app import app

if __name__ == "__main__":
    app()
