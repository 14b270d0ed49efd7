import sys

from bucketfs.cli import main

sys.exit(main())
