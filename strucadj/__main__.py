import sys

from strucadj.cli import main

sys.exit(main())
