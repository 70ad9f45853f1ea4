"""
Entry point for the civicbook CLI when running from a checkout.

Run with:
    python main.py --help
    python main.py render 12
"""
import sys
from pathlib import Path

# Make the checkout importable without installing it
sys.path.insert(0, str(Path(__file__).parent))

from civicbook.cli.main import main

if __name__ == "__main__":
    main()
