"""Entry point for running migrations as a module.

Usage:
    python -m surreal_migrate up --db my_app
    python -m surreal_migrate down --db my_app --to create_users
    python -m surreal_migrate status --db my_app
    python -m surreal_migrate create add_new_feature
"""

from .cli import main

if __name__ == "__main__":
    main()
