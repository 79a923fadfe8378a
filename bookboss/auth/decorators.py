from functools import wraps

from flask_login import current_user, login_required

from ..errors import AuthError


def admin_required(f):
    @wraps(f)
    @login_required
    def decorated_function(*args, **kwargs):
        if not current_user.is_admin:
            raise AuthError("Admin access required", forbidden=True)
        return f(*args, **kwargs)

    return decorated_function
