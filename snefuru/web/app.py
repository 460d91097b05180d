"""
FastAPI Web Application - Snefuru Dashboard
===========================================

Server-rendered dashboard for the image generation job plus the JSON API
used by the browser client: auth, generation, batches, domains, keyword
positions and the chat relay.
"""

import html
import logging
from dataclasses import asdict
from typing import List, Optional
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from pydantic import ValidationError

from snefuru.application import GenerationRequest, ImagePipeline, NoValidRowsError
from snefuru.infrastructure.auth import AuthError, AuthService, create_token, verify_token
from snefuru.infrastructure.config import get_settings
from snefuru.infrastructure.importer import (
    PositionsParseError,
    PositionsParser,
    extract_structured_rows,
    find_missing_columns,
    parse_spreadsheet_data,
)
from snefuru.infrastructure.llm import MODEL_CATALOG, ChatService, ChatServiceError, ImageModel
from snefuru.infrastructure.persistence import Database, User, init_database
from snefuru.infrastructure.scraper import PageFetcher, PageFetchError
from snefuru.infrastructure.storage import StorageService
from snefuru.infrastructure.wordpress import WpCredentials
from snefuru.web.schemas import (
    BulkAddDomainsRequest,
    BulkDeleteDomainsRequest,
    ChatRequest,
    GenerateRequest,
    IdListRequest,
    LoginRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    SpreadsheetParseRequest,
)

logger = logging.getLogger(__name__)

# ── Globals ────────────────────────────────────────────────────────
db: Optional[Database] = None

TOKEN_COOKIE = "access_token"


class ApiError(Exception):
    """Raised by routes and dependencies; rendered as {"success": false, "message": ...}."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


# ── Lifespan ───────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    global db
    settings = get_settings()
    db = init_database(str(settings.database_file))
    logger.info(f"Database ready at {settings.database_file}")
    for issue in settings.validate():
        logger.warning(issue)
    yield


app = FastAPI(title="Snefuru", description="AI image generation dashboard", lifespan=lifespan)


# ══════════════════════════════════════════════════════════════════
#  ERROR RESPONSES
# ══════════════════════════════════════════════════════════════════

def _error(message: str, status_code: int = 400, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, **extra},
    )


def _format_errors(errors: list) -> List[dict]:
    """pydantic error list -> [{path, message}] with the "body" prefix dropped."""
    formatted = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        message = err.get("msg", "")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        formatted.append({"path": ".".join(loc), "message": message})
    return formatted


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    return _error(exc.message, exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return _error("Validation error", 400, errors=_format_errors(exc.errors()))


# ══════════════════════════════════════════════════════════════════
#  DEPENDENCIES
# ══════════════════════════════════════════════════════════════════

def get_db() -> Database:
    return db


def get_auth_service(database: Database = Depends(get_db)) -> AuthService:
    return AuthService(database)


def get_pipeline(database: Database = Depends(get_db)) -> ImagePipeline:
    return ImagePipeline(database)


def get_chat_service() -> ChatService:
    return ChatService()


def get_page_fetcher() -> PageFetcher:
    return PageFetcher()


def _token_from_request(request: Request) -> Optional[str]:
    """Bearer header first, then the cookie set by the HTML login form."""
    auth_header = request.headers.get("authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1].strip()
    return request.cookies.get(TOKEN_COOKIE)


def _get_current_user(request: Request) -> Optional[User]:
    """Get logged-in user from the session token, or None."""
    token = _token_from_request(request)
    if not token:
        return None
    user_id = verify_token(token)
    if user_id is None:
        return None
    return db.get_user_by_id(user_id)


def require_user(request: Request) -> User:
    token = _token_from_request(request)
    if not token:
        raise ApiError("Authentication required", 401)
    user_id = verify_token(token)
    if user_id is None:
        raise ApiError("Invalid or expired token", 401)
    user = db.get_user_by_id(user_id)
    if not user:
        raise ApiError("User not found", 404)
    return user


# ══════════════════════════════════════════════════════════════════
#  SHARED CSS
# ══════════════════════════════════════════════════════════════════

SHARED_CSS = """
    @import url('https://fonts.googleapis.com/css2?family=Inter:wght@400;500;600;700;800&display=swap');

    :root {
        --bg: #0b1020;
        --panel: rgba(255,255,255,0.04);
        --line: rgba(255,255,255,0.08);
        --line-strong: rgba(244,114,182,0.45);
        --text: #e5e7eb;
        --muted: #8b93a7;
        --pink: #f472b6;
        --amber: #f59e0b;
        --gradient: linear-gradient(135deg, #f472b6 0%, #f59e0b 100%);
    }

    * { margin: 0; padding: 0; box-sizing: border-box; }

    body {
        font-family: 'Inter', -apple-system, BlinkMacSystemFont, sans-serif;
        background: var(--bg);
        background-image: radial-gradient(ellipse 70% 45% at 50% -10%, rgba(244,114,182,0.14), transparent);
        min-height: 100vh;
        color: var(--text);
    }

    @keyframes rise {
        from { opacity: 0; transform: translateY(14px); }
        to   { opacity: 1; transform: translateY(0); }
    }

    .card {
        background: var(--panel);
        backdrop-filter: blur(16px);
        border: 1px solid var(--line);
        border-radius: 14px;
        padding: 24px;
        animation: rise 0.45s ease-out both;
    }
    .card:hover { border-color: var(--line-strong); }

    .btn {
        background: var(--gradient);
        color: #111827;
        border: none;
        padding: 11px 24px;
        border-radius: 10px;
        font-weight: 700;
        font-size: 14px;
        cursor: pointer;
        text-decoration: none;
        display: inline-flex;
        align-items: center;
        gap: 8px;
        font-family: inherit;
    }
    .btn:hover { opacity: 0.9; }
    .btn-ghost { background: var(--panel); border: 1px solid var(--line); color: var(--text); }

    label { display: block; font-size: 12px; color: var(--muted); margin-bottom: 6px; font-weight: 500; }

    input[type="text"], input[type="password"], input[type="email"], select, textarea {
        background: rgba(255,255,255,0.05);
        border: 1px solid var(--line);
        padding: 11px 14px;
        border-radius: 10px;
        color: var(--text);
        font-size: 14px;
        font-family: inherit;
        width: 100%;
    }
    textarea { font-family: 'JetBrains Mono', 'Fira Code', monospace; font-size: 12px; min-height: 180px; }
    input:focus, select:focus, textarea:focus { outline: none; border-color: var(--pink); }

    .alert { padding: 12px 18px; border-radius: 10px; margin-bottom: 18px; font-size: 14px; text-align: center; }
    .alert-success { background: rgba(52,211,153,0.1); border: 1px solid rgba(52,211,153,0.25); color: #34d399; }
    .alert-error { background: rgba(248,113,113,0.1); border: 1px solid rgba(248,113,113,0.25); color: #f87171; }

    a { color: var(--amber); text-decoration: none; }
    code { background: rgba(255,255,255,0.06); padding: 2px 6px; border-radius: 5px; font-size: 12px; }
"""

AUTH_PAGE_CSS = """
    body { display: flex; justify-content: center; align-items: center; padding: 20px; }
    .auth-card { width: 100%; max-width: 430px; padding: 40px 34px; }
    .logo { text-align: center; margin-bottom: 26px; }
    .logo h1 {
        font-size: 30px; font-weight: 800;
        background: var(--gradient);
        -webkit-background-clip: text; -webkit-text-fill-color: transparent;
    }
    .logo p { color: var(--muted); font-size: 14px; margin-top: 6px; }
    .form-group { margin-bottom: 14px; }
    .check { display: flex; gap: 8px; align-items: center; font-size: 13px; color: var(--muted); }
    .btn { width: 100%; justify-content: center; margin-top: 8px; padding: 13px; }
    .footer { text-align: center; margin-top: 22px; font-size: 13px; color: var(--muted); }
"""


# ══════════════════════════════════════════════════════════════════
#  HTML TEMPLATE RENDERERS
# ══════════════════════════════════════════════════════════════════

def _alert(text: str, kind: str) -> str:
    return f'<div class="alert alert-{kind}">{html.escape(text)}</div>' if text else ""


def _page(title: str, body: str, extra_css: str = "") -> str:
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title} - Snefuru</title>
    <style>
        {SHARED_CSS}
        {extra_css}
    </style>
</head>
<body>
{body}
</body>
</html>"""


def render_login_page(message: str = "", error: str = "") -> str:
    body = f"""
    <div class="card auth-card">
        <div class="logo">
            <h1>Snefuru</h1>
            <p>Sign in to generate images</p>
        </div>
        {_alert(message, "success")}{_alert(error, "error")}
        <form method="post" action="/login">
            <div class="form-group">
                <label>Email</label>
                <input type="email" name="email" placeholder="you@example.com" required>
            </div>
            <div class="form-group">
                <label>Password</label>
                <input type="password" name="password" placeholder="Enter password" required>
            </div>
            <div class="form-group check">
                <input type="checkbox" name="remember_me" id="remember_me" value="on">
                <span>Remember me for 30 days</span>
            </div>
            <button type="submit" class="btn">Sign In</button>
        </form>
        <div class="footer">No account yet? <a href="/register">Create one</a></div>
    </div>"""
    return _page("Login", body, AUTH_PAGE_CSS)


def render_register_page(error: str = "") -> str:
    body = f"""
    <div class="card auth-card">
        <div class="logo">
            <h1>Create Account</h1>
            <p>Start generating images from your spreadsheets</p>
        </div>
        {_alert(error, "error")}
        <form method="post" action="/register">
            <div class="form-group"><label>Email</label>
                <input type="email" name="email" placeholder="you@example.com" required></div>
            <div class="form-group"><label>Username</label>
                <input type="text" name="username" placeholder="At least 3 characters" required></div>
            <div class="form-group"><label>First Name</label>
                <input type="text" name="first_name"></div>
            <div class="form-group"><label>Last Name</label>
                <input type="text" name="last_name"></div>
            <div class="form-group"><label>Password</label>
                <input type="password" name="password" placeholder="At least 6 characters" required></div>
            <div class="form-group"><label>Confirm Password</label>
                <input type="password" name="confirm_password" required></div>
            <div class="form-group check">
                <input type="checkbox" name="terms_accepted" id="terms_accepted" value="on">
                <span>I accept the terms and conditions</span>
            </div>
            <button type="submit" class="btn">Create Account</button>
        </form>
        <div class="footer">Already registered? <a href="/login">Sign in</a></div>
    </div>"""
    return _page("Register", body, AUTH_PAGE_CSS)


def render_dashboard(user: User, batches: list, message: str = "", error: str = "") -> str:
    """Render the generation form and the most recent batches."""

    model_options = "".join(
        f'<option value="{m.value}">{m.value.title()}</option>' for m in ImageModel
    )
    storage_options = "".join(
        f'<option value="{s.value}">{s.value.replace("_", " ").title()}</option>'
        for s in StorageService
    )

    batch_rows = ""
    for batch, images in batches:
        links = " ".join(
            f'<a href="{html.escape(img.img_url1)}" target="_blank">#{img.id}</a>' for img in images
        ) or '<span style="color:var(--muted)">no images</span>'
        batch_rows += f"""
        <tr>
            <td><code>{batch.id}</code></td>
            <td>{html.escape(batch.note1 or "")}</td>
            <td>{batch.created_at}</td>
            <td>{links}</td>
        </tr>"""
    if not batch_rows:
        batch_rows = '<tr><td colspan="4" class="empty">No batches yet. Paste a sheet to get started!</td></tr>'

    body = f"""
    <div class="container">
        <header class="card">
            <div>
                <h1>Snefuru</h1>
                <div class="sub">Signed in as {html.escape(user.username)}</div>
            </div>
            <a href="/logout" class="btn btn-ghost">Logout</a>
        </header>

        {_alert(message, "success")}{_alert(error, "error")}

        <form method="post" action="/generate" class="grid">
            <div class="card">
                <div class="section-title">1. Paste spreadsheet rows</div>
                <p class="hint">Copy from Excel or Google Sheets. The header row needs a
                <code>prompt</code> column and a <code>file</code> column.</p>
                <textarea name="spreadsheet_data" placeholder="actual_prompt_for_image_generating_ai_tool&#9;file_name"></textarea>
            </div>
            <div class="card">
                <div class="section-title">2. Model and storage</div>
                <div class="field"><label>AI Model</label><select name="ai_model">{model_options}</select></div>
                <div class="field"><label>Storage</label><select name="storage_service">{storage_options}</select></div>

                <div class="section-title" style="margin-top:18px;">3. WordPress (optional)</div>
                <div class="field"><label>Site URL</label><input type="text" name="wp_url" placeholder="https://example.com"></div>
                <div class="field"><label>Username</label><input type="text" name="wp_username"></div>
                <div class="field"><label>Password</label><input type="password" name="wp_password"></div>
                <div class="field"><label>Application Password</label><input type="password" name="wp_application_password"></div>
                <div class="field"><label>Post ID</label><input type="text" name="wp_post_id"></div>
                <div class="field"><label>Custom Field Key</label><input type="text" name="wp_mapping_key"></div>

                <button type="submit" class="btn" style="width:100%; justify-content:center; margin-top:10px;">Generate Images</button>
            </div>
        </form>

        <div class="card">
            <div class="section-title">Recent batches</div>
            <table>
                <thead><tr><th>Batch</th><th>Note</th><th>Created</th><th>Images</th></tr></thead>
                <tbody>{batch_rows}</tbody>
            </table>
        </div>
    </div>"""

    dashboard_css = """
        .container { max-width: 1200px; margin: 0 auto; padding: 24px; }
        header { display: flex; justify-content: space-between; align-items: center; margin-bottom: 24px; }
        header h1 {
            font-size: 26px; font-weight: 800;
            background: var(--gradient);
            -webkit-background-clip: text; -webkit-text-fill-color: transparent;
        }
        .sub { color: var(--muted); font-size: 13px; margin-top: 4px; }
        .grid { display: grid; grid-template-columns: 3fr 2fr; gap: 24px; margin-bottom: 24px; }
        @media (max-width: 900px) { .grid { grid-template-columns: 1fr; } }
        .section-title { font-size: 15px; font-weight: 600; margin-bottom: 12px; }
        .hint { color: var(--muted); font-size: 13px; margin-bottom: 12px; line-height: 1.6; }
        .field { margin-bottom: 12px; }
        table { width: 100%; border-collapse: collapse; }
        th { padding: 10px; text-align: left; color: var(--muted); font-size: 11px; text-transform: uppercase; }
        td { padding: 10px; border-top: 1px solid var(--line); font-size: 13px; }
        .empty { text-align: center; color: var(--muted); padding: 28px; }
    """
    return _page("Dashboard", body, dashboard_css)


# ══════════════════════════════════════════════════════════════════
#  HTML ROUTES
# ══════════════════════════════════════════════════════════════════

def _session_response(url: str, user_id: int, remember_me: bool) -> RedirectResponse:
    response = RedirectResponse(url=url, status_code=303)
    max_age = None
    if remember_me:
        max_age = get_settings().auth.remember_me_expire_days * 24 * 3600
    response.set_cookie(
        key=TOKEN_COOKIE,
        value=create_token(user_id, remember_me),
        httponly=True,
        samesite="lax",
        max_age=max_age,
    )
    return response


@app.get("/login", response_class=HTMLResponse)
async def login_page(message: str = "", error: str = ""):
    return render_login_page(message, error)


@app.post("/login")
async def login(
    email: str = Form(...),
    password: str = Form(...),
    remember_me: str = Form(""),
    auth: AuthService = Depends(get_auth_service),
):
    try:
        user, _ = auth.login(email.strip(), password)
    except AuthError as e:
        return HTMLResponse(render_login_page(error=e.message), status_code=e.status_code)

    return _session_response("/", user.id, remember_me == "on")


@app.get("/register", response_class=HTMLResponse)
async def register_page():
    return render_register_page()


@app.post("/register")
async def register(
    email: str = Form(...),
    username: str = Form(...),
    password: str = Form(...),
    confirm_password: str = Form(...),
    first_name: str = Form(""),
    last_name: str = Form(""),
    terms_accepted: str = Form(""),
    auth: AuthService = Depends(get_auth_service),
):
    try:
        data = RegisterRequest(
            email=email.strip(),
            username=username.strip(),
            password=password,
            confirm_password=confirm_password,
            first_name=first_name.strip() or None,
            last_name=last_name.strip() or None,
            terms_accepted=terms_accepted == "on",
        )
    except ValidationError as e:
        first = _format_errors(e.errors())[0]
        return HTMLResponse(render_register_page(error=first["message"]), status_code=400)

    try:
        user = auth.register(data.email, data.username, data.password, data.first_name, data.last_name)
    except AuthError as e:
        return HTMLResponse(render_register_page(error=e.message), status_code=e.status_code)

    return _session_response("/?message=Account created!", user.id, remember_me=False)


@app.get("/logout")
async def logout():
    response = RedirectResponse(url="/login", status_code=303)
    response.delete_cookie(TOKEN_COOKIE)
    return response


@app.get("/", response_class=HTMLResponse)
async def dashboard(request: Request, message: str = "", error: str = ""):
    user = _get_current_user(request)
    if not user:
        return RedirectResponse(url="/login")

    batches = [(b, db.get_images_by_batch_id(b.id)) for b in db.get_recent_image_batches(limit=5)]
    return render_dashboard(user, batches, message, error)


@app.post("/generate")
def generate_from_form(
    request: Request,
    spreadsheet_data: str = Form(""),
    ai_model: ImageModel = Form(ImageModel.OPENAI),
    storage_service: StorageService = Form(StorageService.AMAZON_S3),
    wp_url: str = Form(""),
    wp_username: str = Form(""),
    wp_password: str = Form(""),
    wp_application_password: str = Form(""),
    wp_post_id: str = Form(""),
    wp_mapping_key: str = Form(""),
    pipeline: ImagePipeline = Depends(get_pipeline),
):
    """Run the job for pasted rows and come back to the dashboard."""
    user = _get_current_user(request)
    if not user:
        return RedirectResponse(url="/login", status_code=303)

    cells = parse_spreadsheet_data(spreadsheet_data)
    rows = extract_structured_rows(cells)
    if not rows:
        if not cells:
            error = "Paste at least a header row and one data row"
        else:
            missing = find_missing_columns(cells[0])
            error = (f"Missing columns: {', '.join(missing)}" if missing
                     else "No rows with both a prompt and a file name")
        return RedirectResponse(url=f"/?error={error}", status_code=303)

    credentials = WpCredentials(
        url=wp_url.strip(),
        username=wp_username.strip(),
        password=wp_password,
        post_id=wp_post_id.strip(),
        mapping_key=wp_mapping_key.strip(),
        application_password=wp_application_password,
    )

    try:
        result = pipeline.run(GenerationRequest(
            rows=[row.to_dict() for row in rows],
            ai_model=ai_model.value,
            storage_service=storage_service.value,
            wp_credentials=credentials,
        ))
    except NoValidRowsError as e:
        return RedirectResponse(url=f"/?error={e}", status_code=303)
    except Exception as e:
        logger.exception(f"Generation error: {e}")
        return RedirectResponse(url=f"/?error=Generation failed: {str(e)[:80]}", status_code=303)

    message = f"Batch {result.batch_id}: {result.count} images generated"
    if result.published_count:
        message += f", {result.published_count} published to WordPress"
    if result.failed_count:
        message += f" ({result.failed_count} failed)"
    return RedirectResponse(url=f"/?message={message}", status_code=303)


# ══════════════════════════════════════════════════════════════════
#  API - AUTH
# ══════════════════════════════════════════════════════════════════

@app.post("/api/auth/register", status_code=201)
async def api_register(data: RegisterRequest, auth: AuthService = Depends(get_auth_service)):
    try:
        user = auth.register(data.email, data.username, data.password, data.first_name, data.last_name)
    except AuthError as e:
        return _error(e.message, e.status_code)

    return {"success": True, "message": "User registered successfully", "user": user.to_public()}


@app.post("/api/auth/login")
async def api_login(data: LoginRequest, auth: AuthService = Depends(get_auth_service)):
    try:
        user, token = auth.login(data.email, data.password, data.remember_me)
    except AuthError as e:
        return _error(e.message, e.status_code)

    return {"success": True, "message": "Login successful", "user": user.to_public(), "token": token}


@app.get("/api/auth/profile")
async def api_get_profile(user: User = Depends(require_user)):
    return {"success": True, "user": user.to_public()}


@app.put("/api/auth/profile")
async def api_update_profile(
    data: ProfileUpdateRequest,
    user: User = Depends(require_user),
    auth: AuthService = Depends(get_auth_service),
):
    password_fields = [data.current_password, data.new_password, data.confirm_new_password]
    if any(password_fields) and not all(password_fields):
        return _error("Validation error", 400, errors=[{
            "path": "current_password",
            "message": "All password fields are required to change password",
        }])
    if data.new_password and data.new_password != data.confirm_new_password:
        return _error("Validation error", 400, errors=[{
            "path": "confirm_new_password",
            "message": "New passwords do not match",
        }])

    try:
        updated = auth.update_profile(
            user,
            email=data.email,
            username=data.username,
            first_name=data.first_name,
            last_name=data.last_name,
            profile_image=data.profile_image,
            current_password=data.current_password,
            new_password=data.new_password,
        )
    except AuthError as e:
        return _error(e.message, e.status_code)

    return {"success": True, "message": "Profile updated successfully", "user": updated.to_public()}


# ══════════════════════════════════════════════════════════════════
#  API - IMAGE GENERATION
# ══════════════════════════════════════════════════════════════════

@app.post("/api/spreadsheet/parse")
async def api_parse_spreadsheet(data: SpreadsheetParseRequest):
    """Parse pasted tab-separated text into prompt/file rows."""
    cells = parse_spreadsheet_data(data.data)
    headers = cells[0] if cells else []
    rows = extract_structured_rows(cells)
    return {
        "success": True,
        "headers": headers,
        "rows": [row.to_dict() for row in rows],
        "missingColumns": find_missing_columns(headers) if headers else [],
    }


@app.post("/api/generate")
def api_generate(data: GenerateRequest, pipeline: ImagePipeline = Depends(get_pipeline)):
    """Runs synchronously; FastAPI moves this blocking handler to its threadpool."""
    wp = data.wpCredentials
    request = GenerationRequest(
        rows=data.spreadsheetData,
        ai_model=data.aiModel.value,
        storage_service=data.storageService.value,
        wp_credentials=WpCredentials(
            url=wp.url,
            username=wp.username,
            password=wp.password,
            post_id=wp.post_id,
            mapping_key=wp.mapping_key,
            application_password=wp.application_password,
        ),
    )

    try:
        result = pipeline.run(request)
    except NoValidRowsError as e:
        return JSONResponse(status_code=400, content={"message": str(e)})
    except Exception as e:
        logger.exception(f"Error generating images: {e}")
        return JSONResponse(status_code=500, content={"message": "Error processing request"})

    return {
        "message": "Image generation completed",
        "batchId": result.batch_id,
        "count": result.count,
        "images": [asdict(image) for image in result.images],
        "publishedToWordPress": result.published_count,
        "failed": result.failed_count,
    }


@app.get("/api/batches")
async def api_list_batches():
    return [asdict(batch) for batch in db.get_all_image_batches()]


@app.get("/api/batches/{batch_id}/images")
async def api_batch_images(batch_id: str):
    try:
        batch_key = int(batch_id)
    except ValueError:
        return JSONResponse(status_code=400, content={"message": "Invalid batch ID"})
    return [asdict(image) for image in db.get_images_by_batch_id(batch_key)]


# ══════════════════════════════════════════════════════════════════
#  API - DOMAINS
# ══════════════════════════════════════════════════════════════════

@app.get("/api/domains")
async def api_list_domains(user: User = Depends(require_user)):
    domains = db.get_user_domains(user.id)
    return {"success": True, "domains": [asdict(d) for d in domains], "total": len(domains)}


@app.post("/api/domains/bulk-add")
async def api_bulk_add_domains(data: BulkAddDomainsRequest, user: User = Depends(require_user)):
    if not data.domains:
        return _error("No domains provided")

    existing = {d.domain_base.lower() for d in db.get_user_domains(user.id)}
    new_domains = []
    for domain in data.domains:
        normalized = domain.strip().lower()
        if normalized not in existing:
            existing.add(normalized)
            new_domains.append(normalized)

    if not new_domains:
        return _error("All domains already exist in your account")

    added = db.bulk_create_domains(user.id, new_domains)
    return {
        "success": True,
        "message": f"Successfully added {len(added)} domains",
        "added": len(added),
        "skipped": len(data.domains) - len(added),
        "domains": [asdict(d) for d in added],
    }


# Declared before /api/domains/{domain_id} so "bulk-delete" is not read as an id
@app.delete("/api/domains/bulk-delete")
async def api_bulk_delete_domains(data: BulkDeleteDomainsRequest, user: User = Depends(require_user)):
    if not data.domainIds:
        return _error("Invalid domain IDs")

    own_ids = {d.id for d in db.get_user_domains(user.id)}
    valid_ids = [i for i in data.domainIds if i in own_ids]
    if not valid_ids:
        return _error("No valid domains to delete")

    db.bulk_delete_domains(valid_ids)
    return {
        "success": True,
        "message": f"Successfully deleted {len(valid_ids)} domains",
        "deleted": len(valid_ids),
    }


@app.delete("/api/domains/{domain_id}")
async def api_delete_domain(domain_id: str, user: User = Depends(require_user)):
    try:
        domain_key = int(domain_id)
    except ValueError:
        return _error("Invalid domain ID")

    domain = db.get_domain(domain_key)
    if not domain or domain.rel_user_id != user.id:
        return _error("Domain not found", 404)

    db.delete_domain(domain_key)
    return {"success": True, "message": "Domain deleted successfully"}


# ══════════════════════════════════════════════════════════════════
#  API - KEYWORD POSITIONS
# ══════════════════════════════════════════════════════════════════

@app.get("/api/reddit/organic-positions")
async def api_list_positions(user: User = Depends(require_user)):
    return [asdict(p) for p in db.get_organic_positions_by_user_id(user.id)]


@app.post("/api/reddit/upload-positions")
async def api_upload_positions(
    file: Optional[UploadFile] = File(None),
    user: User = Depends(require_user),
):
    """Import keyword positions from .xlsx / .xls / .csv."""
    if file is None or not file.filename:
        return _error("No file uploaded")

    max_bytes = get_settings().max_upload_bytes
    content = await file.read()
    if len(content) > max_bytes:
        return _error(f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB", 413)

    try:
        positions, skipped_rows = PositionsParser().parse(content, file.filename, user.id)
        created = db.bulk_create_organic_positions(positions)
    except PositionsParseError as e:
        return _error(str(e))
    except Exception as e:
        logger.exception(f"Error processing uploaded file {file.filename}: {e}")
        return _error(f"Failed to process uploaded file: {e}", 500)

    message = f"Successfully imported {created} records"
    if skipped_rows:
        message += (f". Skipped {len(skipped_rows)} rows due to missing required data "
                    f"(rows: {', '.join(str(r) for r in skipped_rows)})")

    return {"success": True, "message": message, "count": created, "skipped": len(skipped_rows)}


@app.delete("/api/reddit/organic-positions/bulk-delete")
async def api_bulk_delete_positions(data: IdListRequest, user: User = Depends(require_user)):
    if not data.ids:
        return _error("Invalid or empty IDs array")

    for position_id in data.ids:
        position = db.get_organic_position(position_id)
        if not position or position.user_id != user.id:
            return _error("Unauthorized to delete these records", 403)

    db.delete_organic_positions(data.ids)
    return {"success": True, "message": "Records deleted successfully", "deletedCount": len(data.ids)}


@app.get("/api/reddit/organic-positions/{position_id}")
async def api_get_position(position_id: str, user: User = Depends(require_user)):
    try:
        position_key = int(position_id)
    except ValueError:
        return _error("Invalid position ID")

    position = db.get_organic_position(position_key)
    if not position:
        return _error("Position not found", 404)
    if position.user_id != user.id:
        return _error("Unauthorized to access this position", 403)
    return asdict(position)


@app.post("/api/reddit/scrape-urls")
def api_scrape_urls(
    data: IdListRequest,
    user: User = Depends(require_user),
    fetcher: PageFetcher = Depends(get_page_fetcher),
):
    """Fetch the ranking page of each position and store its HTML."""
    if not data.ids:
        return _error("Invalid or empty IDs array")
    if not fetcher.is_configured:
        return _error("ScraperAPI key not configured. Please add your ScraperAPI key "
                      "to environment variables.")

    scraped = 0
    failed = 0
    for position_id in data.ids:
        position = db.get_organic_position(position_id)
        if not position or position.user_id != user.id:
            logger.warning(f"Skipping unauthorized record {position_id}")
            failed += 1
            continue
        if not position.url:
            logger.warning(f"Skipping record {position_id} - no URL")
            failed += 1
            continue

        try:
            page = fetcher.fetch(position.url)
        except PageFetchError as e:
            logger.error(f"Error scraping URL for record {position_id}: {e}")
            failed += 1
            continue

        db.update_organic_position(position_id, raw_page_fetched_1=page)
        scraped += 1

    return {
        "success": True,
        "message": f"Scraping completed: {scraped} successful, {failed} failed",
        "scraped_count": scraped,
        "failed_count": failed,
    }


# ══════════════════════════════════════════════════════════════════
#  API - CHAT
# ══════════════════════════════════════════════════════════════════

@app.post("/api/chat/send")
def api_chat_send(data: ChatRequest, chat: ChatService = Depends(get_chat_service)):
    if not data.message:
        return _error("Message is required and must be a string")

    try:
        reply = chat.send(data.message, data.model, data.conversationHistory)
    except ChatServiceError as e:
        return _error(e.message, e.status_code)

    return {"success": True, "response": reply.response, "model": reply.model, "usage": reply.usage}


@app.get("/api/chat/models")
async def api_chat_models():
    return {"success": True, "models": MODEL_CATALOG}


@app.get("/api/chat/health")
async def api_chat_health(chat: ChatService = Depends(get_chat_service)):
    return {
        "success": True,
        "status": "healthy",
        "apiKeyConfigured": chat.api_key_configured,
        "availableModels": chat.available_models,
    }


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO)
    uvicorn.run(app, host="127.0.0.1", port=8000)
