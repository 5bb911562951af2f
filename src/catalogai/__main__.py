"""
Main entry point for catalogai when run as a module.

Allows execution via: python -m catalogai

catalogai/src/catalogai/__main__.py
"""

from .cli import main

if __name__ == "__main__":
    main()
