"""Socket authentication tokens.

HTTP login issues an HS256 token; the socket layer trades it back for the
``User`` row via ``authenticate``.
"""

from datetime import datetime, timedelta, timezone

from flask import current_app
from jose import JWTError, jwt

from duel.exceptions import AuthError
from duel.models import User

ALGORITHM = 'HS256'


def issue_token(username: str) -> str:
    expire_minutes = int(current_app.config.get('JWT_EXPIRE_MINUTES', 1440))
    payload = {
        'sub': username,
        'exp': datetime.now(timezone.utc) + timedelta(minutes=expire_minutes),
    }
    return jwt.encode(payload, current_app.config['JWT_SECRET'], algorithm=ALGORITHM)


def authenticate(token) -> User:
    if not token or not isinstance(token, str):
        raise AuthError('Missing token')
    try:
        payload = jwt.decode(token, current_app.config['JWT_SECRET'], algorithms=[ALGORITHM])
    except JWTError as exc:
        raise AuthError('Invalid token') from exc
    username = payload.get('sub')
    user = User.query.filter_by(username=username).first() if username else None
    if not user:
        raise AuthError('Unknown user')
    return user
