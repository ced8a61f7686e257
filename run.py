"""Launcher for the vote server.

    python run.py --port 7004 --candidate "Candidate A" --candidate "Candidate B"
"""

import sys

from server.app import main


if __name__ == "__main__":
    sys.exit(main())
