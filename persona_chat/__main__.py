import sys

from persona_chat.cli import main

sys.exit(main())
