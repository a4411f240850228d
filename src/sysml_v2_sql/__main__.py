"""Module entry point for `python -m sysml_v2_sql`."""

from .cli import main

if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
