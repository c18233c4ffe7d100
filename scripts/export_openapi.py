"""Export the tracker's OpenAPI document to a static JSON file.

Usage: python scripts/export_openapi.py [output_path]
"""

import json
import sys
from pathlib import Path

from main import app

DEFAULT_PATH = Path(__file__).resolve().parent.parent / "openapi.json"


def main(argv: list[str]) -> None:
    target = Path(argv[1]) if len(argv) > 1 else DEFAULT_PATH
    spec = app.openapi()
    target.write_text(json.dumps(spec, indent=2, ensure_ascii=False) + "\n")
    routes = sum(len(ops) for ops in spec.get("paths", {}).values())
    print(f"Wrote {target} ({routes} operations)")


if __name__ == "__main__":
    main(sys.argv)
