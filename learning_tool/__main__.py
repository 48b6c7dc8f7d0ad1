"""Allow ``python -m learning_tool``."""
from .cli import main

main()
