import sys

from docx_manuscript.cli import main

sys.exit(main())
