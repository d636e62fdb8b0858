#!/usr/bin/env python3
"""
Generate the OpenAPI document for the policy graph API.

Usage:
  python scripts/generate_openapi.py [--output docs/openapi.json]
"""

import argparse
import json
from pathlib import Path

from policy_graph.main import create_app


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--output", default="docs/openapi.json", type=Path)
    args = parser.parse_args()

    schema = create_app().openapi()

    args.output.parent.mkdir(parents=True, exist_ok=True)
    with open(args.output, "w", encoding="utf-8") as f:
        json.dump(schema, f, indent=2)
        f.write("\n")

    print(f"[OK] OpenAPI schema generated: {args.output}")
    for path, methods in schema["paths"].items():
        for method, details in methods.items():
            tags = details.get("tags") or [""]
            print(f"   {method.upper():6} {path:32} [{tags[0]}] {details.get('summary', '')}")


if __name__ == "__main__":
    main()
