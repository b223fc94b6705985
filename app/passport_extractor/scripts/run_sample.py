from __future__ import annotations

import argparse
import json
from pathlib import Path

import anyio

from passport_extractor.actions import request_extraction, request_suggestions
from passport_extractor.pipeline.ingest import file_to_data_uri, guess_mime_type


async def _run(path: Path, suggest: bool) -> dict:
    document = file_to_data_uri(path.read_bytes(), guess_mime_type(path.name))
    extraction = await request_extraction(document)
    output = {"extraction": extraction.wire()}
    if suggest and extraction.ok:
        suggestions = await request_suggestions(extraction.value, document)
        output["suggestions"] = suggestions.wire()
    return output


def main() -> None:
    parser = argparse.ArgumentParser(description="Extract passport fields from a local image or PDF.")
    parser.add_argument("path", type=Path, help="Passport image or PDF")
    parser.add_argument("--suggest", action="store_true", help="Also request correction suggestions")
    args = parser.parse_args()

    output = anyio.run(_run, args.path, args.suggest)
    print(json.dumps(output, indent=2))


if __name__ == "__main__":
    main()
