# Presentation Layer
# ==================
# - app.py: FastAPI dashboard pages and JSON API
# - schemas.py: pydantic request bodies
