import sys

from s3filter.cli import main

sys.exit(main())
