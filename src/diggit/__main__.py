"""
Diggit package entry point.

Allows running diggit as a module:
    python -m diggit
"""

from diggit.cli import main

if __name__ == "__main__":
    main()
