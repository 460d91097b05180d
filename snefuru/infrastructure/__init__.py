# Infrastructure Layer
# ====================
# Contains all external service integrations:
# - llm/: OpenAI image generation and chat relay
# - storage/: Google Drive, Dropbox and Amazon S3 uploads
# - wordpress/: WordPress REST media publishing
# - importer/: pasted spreadsheet and keyword position file parsing
# - scraper/: ScraperAPI page fetching
# - auth/: password hashing and session tokens
# - persistence/: SQLite repository
# - config/: Environment and settings management
