"""Entry point for running the client via python -m bracket_client"""

from bracket_client.cli import main

if __name__ == "__main__":
    main()
