"""
Snefuru - Web Server Entry Point
================================

Run this to start the web dashboard:
    python main.py

Then open http://127.0.0.1:8000 in your browser.

To run a generation batch without the browser:
    python run_batch.py rows.tsv --model openai --storage amazon_s3
"""

import logging

import uvicorn

from snefuru.infrastructure.config import get_settings


def main():
    """Start the web server."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    print("\n" + "=" * 50)
    print("   Snefuru - Image Generation Dashboard")
    print("=" * 50)

    for issue in get_settings().validate():
        print(f"   {issue}")

    print("\n   Starting server at http://127.0.0.1:8000")
    print("   Press Ctrl+C to stop\n")

    uvicorn.run(
        "snefuru.web.app:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
        log_level="info"
    )


if __name__ == "__main__":
    main()
