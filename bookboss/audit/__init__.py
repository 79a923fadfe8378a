"""Append-only audit trail for catalog, lending and account changes."""

from flask import current_app, has_app_context, has_request_context, request
from flask_login import current_user

from ..models import AuditLog, db

DEFAULT_DETAIL_MAX_LENGTH = 2000


def _acting_user_id():
    if not has_request_context():
        return None
    if current_user and current_user.is_authenticated:
        return current_user.id
    return None


def _client_address():
    # ProxyFix has already rewritten remote_addr when TRUST_PROXY is on
    return request.remote_addr if has_request_context() else None


def format_detail(detail):
    """Render *detail* as stored text.

    Mappings become ``key=value`` pairs in key order; the result is clipped to
    ``AUDIT_DETAIL_MAX_LENGTH`` characters.
    """
    if detail is None:
        return None
    if isinstance(detail, dict):
        detail = ", ".join(f"{key}={detail[key]}" for key in sorted(detail))
    text = str(detail)
    limit = DEFAULT_DETAIL_MAX_LENGTH
    if has_app_context():
        limit = current_app.config.get("AUDIT_DETAIL_MAX_LENGTH", DEFAULT_DETAIL_MAX_LENGTH)
    if len(text) > limit:
        text = text[: max(limit - 3, 0)] + "..."
    return text or None


def log_event(action, target_type=None, target_id=None, detail=None, user_id=None, commit=None):
    """Record *action* in the audit trail and return the new entry.

    With ``commit=None`` the entry rides along with any pending writes in the
    session (flush only) and is committed on its own when there are none.
    ``commit=False`` always joins the caller's transaction.
    """
    joins_pending_work = bool(db.session.new or db.session.dirty or db.session.deleted)
    entry = AuditLog(
        user_id=user_id or _acting_user_id(),
        action=action,
        target_type=target_type,
        target_id=target_id,
        detail=format_detail(detail),
        ip_address=_client_address(),
    )
    db.session.add(entry)

    if commit is None:
        commit = not joins_pending_work
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return entry
