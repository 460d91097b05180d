"""
Batch Runner - Image Generation From a File
============================================

Runs the same job as the dashboard's "Generate Images" button against a
tab-separated file (header row with a prompt column and a file column).

    python run_batch.py rows.tsv --model openai --storage dropbox
    python run_batch.py rows.tsv --wp-url https://example.com --wp-username admin \
        --wp-password "xxxx xxxx xxxx" --wp-post-id 42
"""

import sys
import logging
import argparse
from pathlib import Path

from snefuru.application import GenerationRequest, ImagePipeline, NoValidRowsError
from snefuru.infrastructure.config import get_settings
from snefuru.infrastructure.importer import find_missing_columns, parse_spreadsheet_data, extract_structured_rows
from snefuru.infrastructure.llm import ImageModel
from snefuru.infrastructure.persistence import init_database
from snefuru.infrastructure.storage import StorageService
from snefuru.infrastructure.wordpress import WpCredentials

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate, store and publish images from a TSV file.")
    parser.add_argument("file", type=Path, help="Tab-separated file with a header row")
    parser.add_argument("--model", choices=[m.value for m in ImageModel], default=ImageModel.OPENAI.value)
    parser.add_argument("--storage", choices=[s.value for s in StorageService],
                        default=StorageService.AMAZON_S3.value)
    parser.add_argument("--wp-url", default="")
    parser.add_argument("--wp-username", default="")
    parser.add_argument("--wp-password", default="")
    parser.add_argument("--wp-application-password", default="")
    parser.add_argument("--wp-post-id", default="")
    parser.add_argument("--wp-mapping-key", default="")
    return parser


def run_batch(argv=None) -> int:
    """Run one batch; returns a process exit code."""
    args = build_parser().parse_args(argv)

    print("\n" + "=" * 60)
    print("   Snefuru - Batch Runner")
    print("=" * 60 + "\n")

    if not args.file.exists():
        print(f"File not found: {args.file}")
        return 1

    cells = parse_spreadsheet_data(args.file.read_text(encoding="utf-8"))
    rows = extract_structured_rows(cells)
    if not rows:
        missing = find_missing_columns(cells[0]) if cells else []
        print(f"No usable rows. Missing columns: {', '.join(missing) or 'none'}")
        return 1

    print(f"Found {len(rows)} rows - model={args.model}, storage={args.storage}\n")

    settings = get_settings()
    db = init_database(str(settings.database_file))
    pipeline = ImagePipeline(db)

    credentials = WpCredentials(
        url=args.wp_url,
        username=args.wp_username,
        password=args.wp_password,
        post_id=args.wp_post_id,
        mapping_key=args.wp_mapping_key,
        application_password=args.wp_application_password,
    )

    try:
        result = pipeline.run(GenerationRequest(
            rows=[row.to_dict() for row in rows],
            ai_model=args.model,
            storage_service=args.storage,
            wp_credentials=credentials,
        ))
    except NoValidRowsError as e:
        print(str(e))
        return 1
    except KeyboardInterrupt:
        print("\n\nInterrupted! Images saved so far are kept.")
        return 130

    # Summary
    print("\n" + "=" * 60)
    print(f"Batch {result.batch_id} complete!")
    print(f"   Saved: {result.count} | Published: {result.published_count} | Failed: {result.failed_count}")
    for image in result.images:
        print(f"   {image.img_url1}")
    print("=" * 60 + "\n")

    return 0 if result.count else 2


if __name__ == "__main__":
    sys.exit(run_batch())
