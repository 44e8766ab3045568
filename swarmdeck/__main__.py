"""Allow ``python -m swarmdeck``."""

from swarmdeck.cli import main

main()
