# Snefuru - AI Image Generation Dashboard
# =======================================
# Turns pasted spreadsheet rows into generated images, stores them in the
# cloud and optionally publishes them to WordPress. Layered Architecture:
#
# ARCHITECTURE LAYERS:
# - Presentation:   FastAPI dashboard and JSON API (web/), batch CLI
# - Application:    The generate job (application/image_pipeline.py)
# - Infrastructure: External services (OpenAI, S3/Dropbox/Drive, WordPress,
#                   ScraperAPI, SQLite)
#
# Swapping a storage backend or image model only touches infrastructure/.
