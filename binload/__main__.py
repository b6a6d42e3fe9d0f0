"""Allow ``python -m binload``."""

from binload.cli import main

main()
