# bootstrap/__main__.py
import sys

from bootstrap.main import main

sys.exit(main())
