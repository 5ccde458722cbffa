"""Entry point for running mob-consensus via python -m mob_consensus"""

from .cli import main

if __name__ == "__main__":
    main()
