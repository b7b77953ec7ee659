"""
FollowMe Attendance Agent
=========================
Queues attendance entries locally and submits them to the configured
attendance API whenever the network and credentials allow.

Usage:
    python agent.py run
    python agent.py add "Jane Doe" --category Main
    python agent.py --help
"""

import sys

from attendance_core.runner import main

if __name__ == "__main__":
    sys.exit(main())
