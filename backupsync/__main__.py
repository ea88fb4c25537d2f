"""Run backupsync: python -m backupsync"""

import sys

from backupsync.cli import main

if __name__ == "__main__":
    sys.exit(main())
