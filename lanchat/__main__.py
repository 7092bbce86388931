"""
Entry point for running lanchat as a module: python -m lanchat
"""

from lanchat.cli import main

if __name__ == "__main__":
    main()
