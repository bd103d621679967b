"""Allow ``python -m autonome``."""

from autonome.cli import main

if __name__ == "__main__":
    main()
