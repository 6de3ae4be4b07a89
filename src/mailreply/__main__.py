"""Allow ``python -m mailreply``."""

import sys

from mailreply.app import main

sys.exit(main())
