"""
Entry point for running API Builder as a module.

Usage:
    python -m api_builder [options]    # CLI mode
    python -m api_builder              # start the server
"""

from .cli import main

if __name__ == "__main__":
    main()
