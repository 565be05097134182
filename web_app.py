"""Web UI and JSON API for the deadline manager."""
from __future__ import annotations

import logging
import threading
from typing import Any, Literal

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auth_service import AuthError, AuthService
from config import AppConfig
from config import load as load_config
from contact_service import ContactService
from contacts_api import ContactsApi
from date_utils import Clock, SystemClock, format_deadline
from local_store import LocalStore
from models import CATEGORY_LABELS, STANDARD_CATEGORIES, Contact, category_icon
from projection import ALL_CATEGORIES, SortMode, ViewState
from slack_digest import is_authorized, run_digest

app = FastAPI(title="Deadline Manager", version="1.0")
logger = logging.getLogger("deadlines.api")

LOCAL_SERVICE_KEY = ""

# One canonical list per signed-in user (or one for the no-login store)
_services: dict[str, ContactService] = {}
_services_lock = threading.Lock()


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """When config.debug is True, log API request method and path."""
    debug = load_config().debug
    if debug:
        qs = request.url.query
        logger.warning("[API] %s %s%s", request.method, request.url.path, "?" + qs if qs else "")
    response = await call_next(request)
    if debug:
        logger.warning("[API] %s %s -> %s", request.method, request.url.path, response.status_code)
    return response


# --- service registry ---


def _clock(config: AppConfig) -> Clock:
    return SystemClock(config.user_timezone)


def _auth(config: AppConfig) -> AuthService:
    return AuthService(config.database_path or None)


def _service_for(key: str, config: AppConfig) -> ContactService:
    with _services_lock:
        service = _services.get(key)
        if service is None:
            local = LocalStore(config.local_store_path or None)
            if key == LOCAL_SERVICE_KEY:
                service = ContactService(clock=_clock(config), local=local, history_limit=config.history_limit)
            else:
                service = ContactService(
                    clock=_clock(config),
                    local=local,
                    api=ContactsApi(config.database_path or None),
                    user_id=key,
                    history_limit=config.history_limit,
                )
            _services[key] = service
        return service


def drop_service(key: str) -> None:
    with _services_lock:
        _services.pop(key, None)


def reset_services() -> None:
    """Forget every cached list (config change, tests)."""
    with _services_lock:
        _services.clear()


def current_user(request: Request, config: AppConfig) -> dict[str, Any] | None:
    token = request.cookies.get(config.session_cookie_name)
    return _auth(config).user_for_token(token)


def get_service(request: Request) -> ContactService:
    """Dependency: the caller's ContactService. 401 when the database backend has no session."""
    config = load_config()
    if config.storage_mode == "local":
        return _service_for(LOCAL_SERVICE_KEY, config)
    user = current_user(request, config)
    if not user:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return _service_for(user["id"], config)


# --- API schemas ---


class CamelBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ContactCreate(CamelBody):
    name: str = ""
    purpose: str = ""
    deadline: str = ""
    category: str | None = None
    priority: str | None = None


class ContactUpdate(CamelBody):
    name: str | None = None
    purpose: str | None = None
    deadline: str | None = None
    category: str | None = None
    priority: str | None = None


class ScheduleBody(CamelBody):
    """recurring cadence, or next_deadline as a date / preset ("tomorrow", "next week", "next month")."""
    recurring: Literal["daily", "weekly", "monthly", "custom"] | None = None
    next_deadline: str | None = None
    days: int | None = Field(default=None, ge=1)
    weekday: int | None = Field(default=None, ge=0, le=6)


class DropBody(CamelBody):
    lane: str


class MoveBody(CamelBody):
    offset: int


class ReorderBody(CamelBody):
    ids: list[str]


class SelectionBody(CamelBody):
    action: Literal["select", "deselect", "all", "clear"]
    ids: list[str] = Field(default_factory=list)
    category: str = ALL_CATEGORIES
    q: str = ""
    sort: SortMode = "auto"


class PriorityBody(CamelBody):
    priority: str


class ConfirmBody(CamelBody):
    confirm: bool = False


class Credentials(CamelBody):
    email: str = ""
    password: str = ""


# --- helpers ---


def _view(category: str, q: str, sort: SortMode) -> ViewState:
    return ViewState(category=category or ALL_CATEGORIES, search=q or "", sort_mode=sort)


def _contact_json(contact: Contact, service: ContactService) -> dict[str, Any]:
    out = contact.to_api()
    out["deadlineLabel"] = format_deadline(contact.deadline, service.today())
    out["selected"] = contact.id in service.selection
    return out


def _state(service: ContactService, contacts: list[Contact], **extra: Any) -> dict[str, Any]:
    return {
        "today": service.today().isoformat(),
        "contacts": [_contact_json(c, service) for c in contacts],
        "selection": sorted(service.selection),
        "canUndo": service.history.can_undo,
        "canRedo": service.history.can_redo,
        **extra,
    }


def _ensure_loaded(service: ContactService) -> str | None:
    """Load on first use and again after the date changes; returns the migration notice, if any."""
    result = service.ensure_loaded()
    return result.message if result is not None else None


def _require_contact(service: ContactService, contact_id: str) -> Contact:
    contact = service.get(contact_id)
    if contact is None:
        raise HTTPException(status_code=404, detail="Contact not found")
    return contact


def _stored(contact: Contact | None, service: ContactService) -> dict[str, Any]:
    if contact is None:
        raise HTTPException(status_code=500, detail="保存に失敗しました")
    return _contact_json(contact, service)


# --- contacts API ---


@app.get("/api/contacts")
def api_list_contacts(
    category: str = ALL_CATEGORIES,
    q: str = "",
    sort: SortMode = "auto",
    reload: bool = False,
    service: ContactService = Depends(get_service),
):
    with service.lock:
        notice = service.load().message if reload else _ensure_loaded(service)
        return _state(service, service.view(_view(category, q, sort)), notice=notice)


@app.get("/api/contacts/export.csv")
def api_export_csv(
    category: str = ALL_CATEGORIES,
    q: str = "",
    sort: SortMode = "auto",
    service: ContactService = Depends(get_service),
) -> Response:
    config = load_config()
    with service.lock:
        _ensure_loaded(service)
        body = service.export_csv(_view(category, q, sort), config.user_timezone)
        filename = f"contacts_{service.today().isoformat()}.csv"
    return Response(
        content="\ufeff" + body,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.post("/api/contacts", status_code=201)
def api_create_contact(body: ContactCreate, service: ContactService = Depends(get_service)):
    with service.lock:
        _ensure_loaded(service)
        try:
            created = service.add(
                body.name, body.purpose, body.deadline or None, category=body.category, priority=body.priority
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return _stored(created, service)


@app.put("/api/contacts/{contact_id}")
def api_update_contact(contact_id: str, body: ContactUpdate, service: ContactService = Depends(get_service)):
    changes = body.model_dump(exclude_unset=True)
    with service.lock:
        _ensure_loaded(service)
        _require_contact(service, contact_id)
        try:
            updated = service.edit(contact_id, **changes)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return _stored(updated, service)


@app.delete("/api/contacts/{contact_id}")
def api_delete_contact(contact_id: str, service: ContactService = Depends(get_service)):
    with service.lock:
        _ensure_loaded(service)
        _require_contact(service, contact_id)
        if not service.delete(contact_id):
            raise HTTPException(status_code=500, detail="削除に失敗しました")
        return {"ok": True}


@app.post("/api/contacts/reorder")
def api_reorder(body: ReorderBody, service: ContactService = Depends(get_service)):
    with service.lock:
        _ensure_loaded(service)
        return service.reorder(body.ids).to_dict()


@app.post("/api/contacts/{contact_id}/toggle")
def api_toggle(contact_id: str, service: ContactService = Depends(get_service)):
    with service.lock:
        _ensure_loaded(service)
        _require_contact(service, contact_id)
        return _stored(service.toggle_complete(contact_id), service)


@app.post("/api/contacts/{contact_id}/cancel")
def api_cancel_completion(contact_id: str, service: ContactService = Depends(get_service)):
    with service.lock:
        _ensure_loaded(service)
        _require_contact(service, contact_id)
        return _stored(service.cancel_completion(contact_id), service)


@app.post("/api/contacts/{contact_id}/schedule")
def api_schedule_next(contact_id: str, body: ScheduleBody, service: ContactService = Depends(get_service)):
    with service.lock:
        _ensure_loaded(service)
        _require_contact(service, contact_id)
        try:
            updated = service.schedule_next(
                contact_id,
                recurring=body.recurring,
                next_deadline=body.next_deadline,
                days=body.days,
                weekday=body.weekday,
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return _stored(updated, service)


@app.post("/api/contacts/{contact_id}/drop")
def api_drop(contact_id: str, body: DropBody, service: ContactService = Depends(get_service)):
    with service.lock:
        _ensure_loaded(service)
        _require_contact(service, contact_id)
        try:
            updated = service.drop(contact_id, body.lane)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return _stored(updated, service)


@app.post("/api/contacts/{contact_id}/move")
def api_move(contact_id: str, body: MoveBody, service: ContactService = Depends(get_service)):
    with service.lock:
        _ensure_loaded(service)
        _require_contact(service, contact_id)
        return service.move(contact_id, body.offset).to_dict()


@app.post("/api/selection")
def api_selection(body: SelectionBody, service: ContactService = Depends(get_service)):
    with service.lock:
        _ensure_loaded(service)
        if body.action == "select":
            service.select(body.ids)
        elif body.action == "deselect":
            service.deselect(body.ids)
        elif body.action == "all":
            service.select_all(_view(body.category, body.q, body.sort))
        else:
            service.clear_selection()
        return {"selection": sorted(service.selection)}


@app.post("/api/bulk/priority")
def api_bulk_priority(body: PriorityBody, service: ContactService = Depends(get_service)):
    with service.lock:
        _ensure_loaded(service)
        try:
            return service.bulk_set_priority(body.priority).to_dict()
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))


@app.post("/api/bulk/overdue-to-today")
def api_bulk_overdue_to_today(body: ConfirmBody, service: ContactService = Depends(get_service)):
    with service.lock:
        _ensure_loaded(service)
        try:
            return service.bulk_overdue_to_today(body.confirm).to_dict()
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))


@app.post("/api/undo")
def api_undo(service: ContactService = Depends(get_service)):
    with service.lock:
        _ensure_loaded(service)
        result = service.undo()
        if result is None:
            raise HTTPException(status_code=409, detail="元に戻す操作がありません")
        return result.to_dict()


@app.post("/api/redo")
def api_redo(service: ContactService = Depends(get_service)):
    with service.lock:
        _ensure_loaded(service)
        result = service.redo()
        if result is None:
            raise HTTPException(status_code=409, detail="やり直す操作がありません")
        return result.to_dict()


@app.get("/api/board")
def api_board(service: ContactService = Depends(get_service)):
    with service.lock:
        _ensure_loaded(service)
        return {lane: [_contact_json(c, service) for c in items] for lane, items in service.board().items()}


@app.get("/api/notifications/due-today")
def api_due_today(service: ContactService = Depends(get_service)):
    with service.lock:
        _ensure_loaded(service)
        due = service.due_today()
        return {
            "date": service.today().isoformat(),
            "count": len(due),
            "contacts": [{"id": c.id, "name": c.name, "purpose": c.purpose, "priority": c.priority} for c in due],
        }


@app.get("/api/categories")
def api_categories(service: ContactService = Depends(get_service)):
    with service.lock:
        _ensure_loaded(service)
        custom = service.custom_categories()
    return {
        "standard": [{"key": k, "label": CATEGORY_LABELS[k], "icon": category_icon(k)} for k in STANDARD_CATEGORIES],
        "custom": [{"key": name, "label": name, "icon": category_icon(name)} for name in custom],
    }


# --- auth API ---


def _set_session_cookie(response: Response, config: AppConfig, token: str) -> None:
    response.set_cookie(
        config.session_cookie_name,
        token,
        httponly=True,
        samesite="lax",
        secure=config.is_production,
    )


def _require_database_mode(config: AppConfig) -> None:
    if config.storage_mode != "database":
        raise HTTPException(status_code=400, detail="ローカルモードではログインは不要です")


@app.post("/api/auth/signup")
def api_signup(body: Credentials, response: Response):
    config = load_config()
    _require_database_mode(config)
    try:
        user, token = _auth(config).sign_up(body.email, body.password)
    except AuthError as e:
        raise HTTPException(status_code=400, detail=str(e))
    drop_service(user["id"])
    _set_session_cookie(response, config, token)
    return {"user": user}


@app.post("/api/auth/signin")
def api_signin(body: Credentials, response: Response):
    config = load_config()
    _require_database_mode(config)
    try:
        user, token = _auth(config).sign_in(body.email, body.password)
    except AuthError as e:
        raise HTTPException(status_code=401, detail=str(e))
    drop_service(user["id"])
    _set_session_cookie(response, config, token)
    return {"user": user}


@app.post("/api/auth/signout")
def api_signout(request: Request, response: Response):
    config = load_config()
    if config.storage_mode == "database":
        auth = _auth(config)
        token = request.cookies.get(config.session_cookie_name)
        user = auth.user_for_token(token)
        auth.sign_out(token)
        if user:
            drop_service(user["id"])
    response.delete_cookie(config.session_cookie_name)
    return {"ok": True}


@app.get("/api/auth/session")
def api_session(request: Request):
    config = load_config()
    user = current_user(request, config) if config.storage_mode == "database" else None
    return {"user": user, "storageMode": config.storage_mode}


# --- daily digest ---


@app.get("/api/cron/slack-notify")
def api_slack_notify(authorization: str | None = Header(None)):
    config = load_config()
    if not is_authorized(authorization, config):
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})
    status, body = run_digest(config, ContactsApi(config.database_path or None))
    return JSONResponse(status_code=status, content=body)


# --- HTML ---


HTML_PAGE = """<!DOCTYPE html>
<html lang="ja">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>期日管理</title>
  <style>
    * { box-sizing: border-box; }
    body { font-family: system-ui, sans-serif; max-width: 960px; margin: 1.5rem auto; padding: 0 1rem; color: #222; }
    h1 { font-size: 1.4rem; display: flex; justify-content: space-between; align-items: center; }
    .card { border: 1px solid #ddd; border-radius: 8px; padding: 1rem; margin-bottom: 1rem; }
    .row { display: flex; gap: 0.5rem; flex-wrap: wrap; align-items: center; margin-bottom: 0.5rem; }
    input, select, button { padding: 0.4rem 0.6rem; font-size: 0.95rem; }
    button { cursor: pointer; }
    table { width: 100%; border-collapse: collapse; }
    td, th { padding: 0.4rem; border-bottom: 1px solid #eee; text-align: left; vertical-align: top; }
    tr.completed td.text { color: #999; text-decoration: line-through; }
    tr.overdue td { background: #fff4f4; }
    .prio-A { color: #c00; font-weight: bold; }
    .prio-B { color: #c80; }
    .notice { background: #eef7ee; padding: 0.6rem; border-radius: 6px; display: none; }
    .error { background: #fbeaea; padding: 0.6rem; border-radius: 6px; display: none; }
    .lanes { display: grid; grid-template-columns: repeat(3, 1fr); gap: 0.6rem; }
    .lane { background: #f7f7f7; border-radius: 6px; padding: 0.5rem; min-height: 4rem; }
    .lane h3 { font-size: 0.95rem; margin: 0 0 0.4rem; }
    .lane-card { background: #fff; border: 1px solid #ddd; border-radius: 4px; padding: 0.3rem; margin-bottom: 0.3rem; font-size: 0.9rem; }
    .next { font-size: 0.85rem; margin-top: 0.3rem; }
    .next input { width: 4rem; }
  </style>
</head>
<body>
  <h1>📅 期日管理 <span><button id="signout" style="display:none">ログアウト</button></span></h1>
  <div id="notice" class="notice"></div>
  <div id="error" class="error"></div>

  <div class="card">
    <div class="row">
      <input id="name" placeholder="名前" />
      <input id="purpose" placeholder="連絡目的" />
      <input id="deadline" type="date" />
      <select id="category"></select>
      <select id="priority"><option>A</option><option>B</option><option selected>C</option></select>
      <button id="add">追加</button>
    </div>
  </div>

  <div class="card">
    <div class="row">
      <select id="filter_category"><option value="all">すべて</option></select>
      <input id="q" placeholder="検索" />
      <select id="sort">
        <option value="auto">自動</option>
        <option value="manual">手動</option>
        <option value="created">作成順</option>
        <option value="priority">優先度</option>
      </select>
      <button id="undo">元に戻す</button>
      <button id="redo">やり直す</button>
      <a id="csv" href="/api/contacts/export.csv">CSV出力</a>
    </div>
    <div class="row">
      <button id="select_all">全選択</button>
      <button id="clear_selection">選択解除</button>
      <select id="bulk_priority"><option>A</option><option>B</option><option>C</option></select>
      <button id="apply_priority">優先度を一括変更</button>
      <button id="overdue_today">期限切れを本日に</button>
    </div>
    <table>
      <thead><tr><th></th><th>名前</th><th>連絡目的</th><th>期日</th><th>優先度</th><th></th></tr></thead>
      <tbody id="rows"></tbody>
    </table>
  </div>

  <div class="card">
    <div class="lanes" id="board"></div>
  </div>

  <script>
    const $ = id => document.getElementById(id);
    const query = () => new URLSearchParams({ category: $('filter_category').value, q: $('q').value, sort: $('sort').value });
    const show = (id, text) => { $(id).textContent = text || ''; $(id).style.display = text ? 'block' : 'none'; };
    const ESC = { '&': '&amp;', '<': '&lt;', '>': '&gt;', '"': '&quot;', "'": '&#39;' };
    const esc = v => String(v ?? '').replace(/[&<>"']/g, ch => ESC[ch]);
    const LANES = [['overdue', '期限切れ'], ['today', '本日'], ['future', '明日以降']];
    const WEEKDAYS = ['月', '火', '水', '木', '金', '土', '日'];

    async function api(path, method = 'GET', body) {
      const r = await fetch(path, { method, headers: { 'Content-Type': 'application/json' }, body: body ? JSON.stringify(body) : undefined });
      if (r.status === 401) { location.href = '/auth'; return null; }
      const data = await r.json();
      if (!r.ok) { show('error', data.detail || data.error || r.statusText); return null; }
      show('error', '');
      return data;
    }

    async function loadCategories() {
      const data = await api('/api/categories');
      if (!data) return;
      const opts = [...data.standard, ...data.custom].map(c => `<option value="${esc(c.key)}">${esc(c.icon)} ${esc(c.label)}</option>`).join('');
      $('category').innerHTML = opts;
      $('category').value = 'customer';
      $('filter_category').innerHTML = '<option value="all">すべて</option>' + opts;
    }

    async function refresh() {
      const data = await api('/api/contacts?' + query());
      if (!data) return;
      if (data.notice) show('notice', data.notice);
      $('csv').href = '/api/contacts/export.csv?' + query();
      $('undo').disabled = !data.canUndo;
      $('redo').disabled = !data.canRedo;
      $('rows').innerHTML = data.contacts.map(c => {
        const id = esc(c.id);
        return `
        <tr class="${esc(c.status)}${c.isOverdue ? ' overdue' : ''}">
          <td><input type="checkbox" data-select="${id}" ${c.selected ? 'checked' : ''} /></td>
          <td class="text">${esc(c.categoryIcon)} ${esc(c.name)}</td>
          <td class="text">${esc(c.purpose)}</td>
          <td class="text">${esc(c.deadlineLabel)}${c.originalDeadline ? ' (元: ' + esc(c.originalDeadline) + ')' : ''}</td>
          <td class="prio-${esc(c.priority)}">${esc(c.priority)}</td>
          <td>
            <button data-toggle="${id}">${c.status === 'pending' ? '完了' : '未完了に戻す'}</button>
            <button data-edit="${id}">編集</button>
            <button data-delete="${id}">削除</button>
            ${c.status === 'completed' ? nextControls(id) : ''}
          </td>
        </tr>`;
      }).join('');
      refreshBoard();
    }

    function nextControls(id) {
      return `<div class="next">次回:
        <button data-next="tomorrow" data-id="${id}">明日</button>
        <button data-next="next week" data-id="${id}">来週</button>
        <button data-next="next month" data-id="${id}">来月</button>
        <select id="recurring-${id}">
          <option value="daily">毎日</option><option value="weekly">毎週</option>
          <option value="monthly">毎月</option><option value="custom">日数指定</option>
        </select>
        <input id="days-${id}" type="number" min="1" placeholder="日数" />
        <select id="weekday-${id}"><option value="">曜日</option>${WEEKDAYS.map((w, i) => `<option value="${i}">${w}</option>`).join('')}</select>
        <button data-recur="${id}">繰り返し設定</button>
        <button data-cancel="${id}">キャンセル</button>
      </div>`;
    }

    async function refreshBoard() {
      const data = await api('/api/board');
      if (!data) return;
      $('board').innerHTML = LANES.map(([lane, label]) => `
        <div class="lane"><h3>${label} (${(data[lane] || []).length})</h3>
          ${(data[lane] || []).map(c => `
            <div class="lane-card">
              <span class="prio-${esc(c.priority)}">${esc(c.priority)}</span> ${esc(c.categoryIcon)} ${esc(c.name)}
              <div>${esc(c.deadlineLabel)}</div>
              ${lane === 'today' ? '' : `<button data-drop="today" data-id="${esc(c.id)}">本日へ</button>`}
              ${lane === 'future' ? '' : `<button data-drop="future" data-id="${esc(c.id)}">明日以降へ</button>`}
            </div>`).join('')}
        </div>`).join('');
    }

    async function editContact(id) {
      const c = (await api('/api/contacts?' + query())).contacts.find(x => x.id === id);
      if (!c) return;
      const name = prompt('名前', c.name);
      if (name === null) return;
      const purpose = prompt('連絡目的', c.purpose);
      if (purpose === null) return;
      const deadline = prompt('期日 (YYYY-MM-DD)', c.originalDeadline || c.deadline);
      if (deadline === null) return;
      const priority = prompt('優先度 (A/B/C)', c.priority);
      if (priority === null) return;
      const changes = { name, purpose, priority };
      if (deadline !== (c.originalDeadline || c.deadline)) changes.deadline = deadline;
      await api(`/api/contacts/${encodeURIComponent(id)}`, 'PUT', changes);
    }

    async function scheduleRecurring(id) {
      const body = { recurring: $(`recurring-${id}`).value };
      const days = $(`days-${id}`).value, weekday = $(`weekday-${id}`).value;
      if (days) body.days = Number(days);
      if (weekday !== '') body.weekday = Number(weekday);
      await api(`/api/contacts/${encodeURIComponent(id)}/schedule`, 'POST', body);
    }

    $('rows').onclick = async e => {
      const t = e.target, d = t.dataset;
      if (d.toggle) await api(`/api/contacts/${encodeURIComponent(d.toggle)}/toggle`, 'POST');
      else if (d.edit) await editContact(d.edit);
      else if (d.delete && confirm('削除しますか？')) await api(`/api/contacts/${encodeURIComponent(d.delete)}`, 'DELETE');
      else if (d.select) await api('/api/selection', 'POST', { action: t.checked ? 'select' : 'deselect', ids: [d.select] });
      else if (d.next) await api(`/api/contacts/${encodeURIComponent(d.id)}/schedule`, 'POST', { nextDeadline: d.next });
      else if (d.recur) await scheduleRecurring(d.recur);
      else if (d.cancel) await api(`/api/contacts/${encodeURIComponent(d.cancel)}/cancel`, 'POST');
      else return;
      refresh();
    };
    $('board').onclick = async e => {
      const d = e.target.dataset;
      if (!d.drop) return;
      await api(`/api/contacts/${encodeURIComponent(d.id)}/drop`, 'POST', { lane: d.drop });
      refresh();
    };
    $('add').onclick = async () => {
      const created = await api('/api/contacts', 'POST', {
        name: $('name').value, purpose: $('purpose').value, deadline: $('deadline').value,
        category: $('category').value, priority: $('priority').value
      });
      if (created) { $('name').value = ''; $('purpose').value = ''; loadCategories().then(refresh); }
    };
    $('undo').onclick = async () => { await api('/api/undo', 'POST'); refresh(); };
    $('redo').onclick = async () => { await api('/api/redo', 'POST'); refresh(); };
    $('select_all').onclick = async () => {
      await api('/api/selection', 'POST', { action: 'all', category: $('filter_category').value, q: $('q').value, sort: $('sort').value });
      refresh();
    };
    $('clear_selection').onclick = async () => { await api('/api/selection', 'POST', { action: 'clear' }); refresh(); };
    $('apply_priority').onclick = async () => { await api('/api/bulk/priority', 'POST', { priority: $('bulk_priority').value }); refresh(); };
    $('overdue_today').onclick = async () => {
      if (!confirm('期限切れの項目をすべて本日に変更しますか？')) return;
      await api('/api/bulk/overdue-to-today', 'POST', { confirm: true });
      refresh();
    };
    $('signout').onclick = async () => { await api('/api/auth/signout', 'POST'); location.href = '/auth'; };
    ['filter_category', 'sort'].forEach(id => $(id).onchange = refresh);
    $('q').oninput = refresh;

    api('/api/auth/session').then(s => { if (s && s.user) $('signout').style.display = 'inline'; });
    loadCategories().then(refresh);
  </script>
</body>
</html>
"""

AUTH_PAGE = """<!DOCTYPE html>
<html lang="ja">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>ログイン - 期日管理</title>
  <style>
    body { font-family: system-ui, sans-serif; max-width: 360px; margin: 3rem auto; padding: 0 1rem; }
    input, button { display: block; width: 100%; padding: 0.5rem; margin-bottom: 0.6rem; font-size: 1rem; }
    .error { color: #c00; min-height: 1.2rem; }
  </style>
</head>
<body>
  <h1>📅 期日管理</h1>
  <input id="email" type="email" placeholder="メールアドレス" autocomplete="email" />
  <input id="password" type="password" placeholder="パスワード" autocomplete="current-password" />
  <button id="signin">ログイン</button>
  <button id="signup">新規登録</button>
  <div id="error" class="error"></div>
  <script>
    const $ = id => document.getElementById(id);
    async function submit(path) {
      const r = await fetch(path, {
        method: 'POST', headers: { 'Content-Type': 'application/json' },
        body: JSON.stringify({ email: $('email').value, password: $('password').value })
      });
      const data = await r.json();
      if (r.ok) location.href = '/';
      else $('error').textContent = data.detail || 'エラーが発生しました';
    }
    $('signin').onclick = () => submit('/api/auth/signin');
    $('signup').onclick = () => submit('/api/auth/signup');
  </script>
</body>
</html>
"""


@app.get("/", response_class=HTMLResponse)
def index(request: Request):
    config = load_config()
    if config.storage_mode == "database" and not current_user(request, config):
        return RedirectResponse("/auth", status_code=303)
    return HTML_PAGE


@app.get("/auth", response_class=HTMLResponse)
def auth_page(request: Request):
    config = load_config()
    if config.storage_mode == "local" or current_user(request, config):
        return RedirectResponse("/", status_code=303)
    return AUTH_PAGE


def main() -> None:
    import uvicorn
    config = load_config()
    uvicorn.run(
        "web_app:app",
        host="0.0.0.0",
        port=config.web_ui_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
