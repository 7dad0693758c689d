#!/usr/bin/env python3
"""
Entry point for the library tool CLI.

Run with: python -m library_tool
"""

from .cli import cli

if __name__ == '__main__':
    cli()
