import sys

from peakbook_qr.cli import main

sys.exit(main())
