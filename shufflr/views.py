"""
Server-rendered admin pages.

Every value interpolated into markup goes through `e()`.
"""
from html import escape
from typing import Iterable, Optional
from urllib.parse import quote

from fastapi.responses import HTMLResponse

from .security import get_security_headers
from .services.images import format_file_size
from .services.settings import SettingsSnapshot

_STYLE = """
body{font-family:system-ui,sans-serif;margin:0;background:#f5f6f8;color:#222}
nav{background:#222;padding:.75rem 1.5rem;display:flex;gap:1rem;align-items:center}
nav a{color:#ddd;text-decoration:none}nav a.active{color:#fff;font-weight:600}
nav .spacer{flex:1}main{max-width:960px;margin:1.5rem auto;padding:0 1rem}
.flash{padding:.6rem 1rem;border-radius:4px;margin-bottom:1rem}
.success{background:#e3f6e5;color:#1d6b2a}.error{background:#fbe4e4;color:#8a1f1f}
table{width:100%;border-collapse:collapse;background:#fff}
td,th{padding:.5rem;border-bottom:1px solid #eee;text-align:left}
form.inline{display:inline}input,button{font:inherit}
.card{background:#fff;padding:1rem;border-radius:6px;margin-bottom:1rem}
.secret{font-family:monospace;background:#fffbe6;padding:.5rem;word-break:break-all}
.stats{display:flex;gap:1rem}.stats .card{flex:1}
"""

_NAV = (
    ("dashboard", "/admin", "Dashboard"),
    ("images", "/admin/images", "Images"),
    ("api-keys", "/admin/api-keys", "API Keys"),
    ("settings", "/admin/settings", "Settings"),
)


def e(value) -> str:
    return escape("" if value is None else str(value), quote=True)


def _fmt_time(value) -> str:
    if value is None:
        return "Never"
    return value.strftime("%b %d, %Y %I:%M %p")


def page(title: str, body: str, username: Optional[str] = None, active: Optional[str] = None,
         success: Optional[str] = None, error: Optional[str] = None, status_code: int = 200) -> HTMLResponse:
    nav = ""
    if username:
        links = "".join(
            f'<a href="{href}"{" class=active" if key == active else ""}>{label}</a>'
            for key, href, label in _NAV
        )
        nav = (
            f'<nav>{links}<span class="spacer"></span>'
            f'<span style="color:#aaa">{e(username)}</span>'
            f'<form class="inline" method="post" action="/admin/logout"><button>Logout</button></form></nav>'
        )
    flashes = ""
    if success:
        flashes += f'<div class="flash success">{e(success)}</div>'
    if error:
        flashes += f'<div class="flash error">{e(error)}</div>'
    html = (
        f"<!DOCTYPE html><html><head><meta charset=\"utf-8\"><title>{e(title)} - Shufflr</title>"
        f"<style>{_STYLE}</style></head><body>{nav}<main><h1>{e(title)}</h1>{flashes}{body}</main></body></html>"
    )
    return HTMLResponse(content=html, status_code=status_code, headers=get_security_headers())


# ----- Auth pages -----

def setup_page(error: Optional[str] = None, username: str = "") -> HTMLResponse:
    body = f"""
<div class="card"><p>Create the administrator account.</p>
<form method="post" action="/admin/setup">
<p><label>Username <input name="username" value="{e(username)}" required></label></p>
<p><label>Password <input type="password" name="password" required></label></p>
<p><label>Confirm password <input type="password" name="confirm_password" required></label></p>
<button type="submit">Create admin</button></form></div>"""
    return page("Setup", body, error=error)


def login_page(error: Optional[str] = None, success: Optional[str] = None, username: str = "") -> HTMLResponse:
    body = f"""
<div class="card"><form method="post" action="/admin/login">
<p><label>Username <input name="username" value="{e(username)}" required></label></p>
<p><label>Password <input type="password" name="password" required></label></p>
<button type="submit">Log in</button></form></div>"""
    return page("Login", body, success=success, error=error)


# ----- Dashboard -----

def dashboard_page(username: str, enabled_images: int, total_images: int, api_keys: int,
                   active_api_keys: int, total_requests: int, base_url: str,
                   success: Optional[str] = None, error: Optional[str] = None) -> HTMLResponse:
    body = f"""
<div class="stats">
<div class="card"><h3>Images</h3><p>{enabled_images} enabled / {total_images} total</p></div>
<div class="card"><h3>API keys</h3><p>{active_api_keys} active / {api_keys} total</p></div>
<div class="card"><h3>Requests</h3><p>{total_requests}</p></div>
</div>
<div class="card"><h3>Usage</h3>
<pre>curl -H "X-API-Key: YOUR_KEY" {e(base_url)}/api/images?count=5</pre>
<pre>curl -H "Authorization: Bearer YOUR_KEY" {e(base_url)}/api/images/FILENAME</pre></div>"""
    return page("Dashboard", body, username=username, active="dashboard", success=success, error=error)


# ----- Images -----

def images_page(username: str, images: Iterable, success: Optional[str] = None,
                error: Optional[str] = None) -> HTMLResponse:
    images = list(images)
    total_size = sum(img.size for img in images)
    rows = []
    for img in images:
        state = "Enabled" if img.enabled else "Disabled"
        toggle_to = "false" if img.enabled else "true"
        toggle_label = "Disable" if img.enabled else "Enable"
        rows.append(f"""
<tr><td><a href="/admin/images/serve/{e(quote(img.filename))}" target="_blank">{e(img.filename)}</a></td>
<td>{e(format_file_size(img.size))}</td><td>{e(img.mime_type)}</td><td>{state}</td>
<td>{e(img.uploaded_at.strftime('%b %d, %Y') if img.uploaded_at else '')}</td>
<td><form class="inline" method="post" action="/admin/images/toggle">
<input type="hidden" name="filename" value="{e(img.filename)}"><input type="hidden" name="enabled" value="{toggle_to}">
<button>{toggle_label}</button></form>
<form class="inline" method="post" action="/admin/images/rename">
<input type="hidden" name="old_filename" value="{e(img.filename)}">
<input name="new_filename" value="{e(img.filename)}" size="18"><button>Rename</button></form>
<form class="inline" method="post" action="/admin/images/delete">
<input type="hidden" name="filename" value="{e(img.filename)}"><button>Delete</button></form></td></tr>""")
    table = (
        "<table><tr><th>File</th><th>Size</th><th>Type</th><th>Status</th><th>Uploaded</th><th></th></tr>"
        + "".join(rows) + "</table>"
        if rows else "<p>No images uploaded yet.</p>"
    )
    body = (
        f'<p><a href="/admin/images/upload">Upload images</a> &middot; '
        f'{len(images)} images, {e(format_file_size(total_size))}</p>{table}'
    )
    return page("Images", body, username=username, active="images", success=success, error=error)


def upload_page(username: str, error: Optional[str] = None) -> HTMLResponse:
    body = """
<div class="card"><form method="post" action="/admin/images/upload" enctype="multipart/form-data">
<p><input type="file" name="images" accept="image/jpeg,image/png,image/gif,image/webp" multiple required></p>
<button type="submit">Upload</button></form></div>"""
    return page("Upload Images", body, username=username, active="images", error=error)


# ----- API keys -----

def api_keys_page(username: str, keys: Iterable, success: Optional[str] = None,
                  error: Optional[str] = None) -> HTMLResponse:
    """`keys` yields (ApiKey, usage_count) pairs"""
    rows = []
    for key, usage in keys:
        toggle_to = "false" if key.enabled else "true"
        toggle_label = "Disable" if key.enabled else "Enable"
        rows.append(f"""
<tr><td>{e(key.name)}</td><td>{'Active' if key.enabled else 'Disabled'}</td>
<td>{e(_fmt_time(key.created_at))}</td><td>{e(_fmt_time(key.last_used))}</td><td>{usage}</td>
<td><form class="inline" method="post" action="/admin/api-keys/toggle">
<input type="hidden" name="id" value="{key.id}"><input type="hidden" name="enabled" value="{toggle_to}">
<button>{toggle_label}</button></form>
<form class="inline" method="post" action="/admin/api-keys/regenerate">
<input type="hidden" name="id" value="{key.id}"><button>Regenerate</button></form>
<form class="inline" method="post" action="/admin/api-keys/delete">
<input type="hidden" name="id" value="{key.id}"><button>Delete</button></form></td></tr>""")
    table = (
        "<table><tr><th>Name</th><th>Status</th><th>Created</th><th>Last used</th><th>Requests</th><th></th></tr>"
        + "".join(rows) + "</table>"
        if rows else "<p>No API keys yet.</p>"
    )
    body = f'<p><a href="/admin/api-keys/new">New API key</a></p>{table}'
    return page("API Keys", body, username=username, active="api-keys", success=success, error=error)


def new_api_key_page(username: str, error: Optional[str] = None, name: str = "") -> HTMLResponse:
    body = f"""
<div class="card"><form method="post" action="/admin/api-keys/new">
<p><label>Name <input name="name" value="{e(name)}" maxlength="100" required></label></p>
<button type="submit">Create key</button></form></div>"""
    return page("New API Key", body, username=username, active="api-keys", error=error)


def api_key_secret_page(username: str, name: str, raw_key: str, regenerated: bool = False) -> HTMLResponse:
    verb = "regenerated" if regenerated else "created"
    body = f"""
<div class="card"><p>API key <strong>{e(name)}</strong> {verb}. Copy it now, it will not be shown again.</p>
<p class="secret">{e(raw_key)}</p>
<p><a href="/admin/api-keys">Back to API keys</a></p></div>"""
    return page("API Key", body, username=username, active="api-keys", success=f"API key {verb} successfully")


# ----- Settings -----

def settings_page(username: str, snapshot: SettingsSnapshot, success: Optional[str] = None,
                  error: Optional[str] = None, form: Optional[dict] = None) -> HTMLResponse:
    def checked(flag: bool) -> str:
        return " checked" if flag else ""

    if form is not None:
        require_key = bool(form.get("require_api_key_for_images"))
        cors_enabled = bool(form.get("cors_enabled"))
        default_count = form.get("default_image_count") or ""
        max_count = form.get("max_image_count") or ""
        origins = form.get("cors_origins") or ""
    else:
        require_key = snapshot.require_api_key_for_images
        cors_enabled = snapshot.cors_enabled
        default_count = snapshot.default_image_count
        max_count = snapshot.max_image_count
        origins = snapshot.cors_origins

    body = f"""
<div class="card"><form method="post" action="/admin/settings">
<p><label><input type="checkbox" name="require_api_key_for_images" value="true"{checked(require_key)}>
Require an API key for image requests</label></p>
<p><label>Default image count <input name="default_image_count" value="{e(default_count)}" size="6"></label></p>
<p><label>Maximum image count <input name="max_image_count" value="{e(max_count)}" size="6"></label></p>
<p><label><input type="checkbox" name="cors_enabled" value="true"{checked(cors_enabled)}> Enable CORS</label></p>
<p><label>Allowed origins <input name="cors_origins" value="{e(origins)}"></label></p>
<button type="submit">Save settings</button></form></div>"""
    return page("Settings", body, username=username, active="settings", success=success, error=error)
