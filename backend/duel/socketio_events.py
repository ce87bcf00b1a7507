import functools

from flask import current_app, request
from flask_socketio import emit

from duel import socketio
from duel.exceptions import AuthError
from duel.services.auth import authenticate
from duel.services.play import NAMESPACE, Arena
from duel.services import stats


def _arena() -> Arena:
    return current_app.extensions['duel']


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _current_username():
    return _arena().presence.username_for(_get_sid())


def _payload(data) -> dict:
    return data if isinstance(data, dict) else {}


def authenticated(handler):
    """Drop events from sockets that have not authenticated yet."""
    @functools.wraps(handler)
    def wrapper(data=None):
        username = _current_username()
        if not username:
            current_app.logger.debug(f"[ws-drop] sid={_get_sid()} event={handler.__name__} reason=unauthenticated")
            return
        return handler(username, _payload(data))
    return wrapper


def handle_connect():
    emit('connected', {'message': f'Connected to {NAMESPACE}'})


def handle_disconnect(*args):
    _arena().disconnect(_get_sid())


def handle_authenticate(token=None):
    if isinstance(token, dict):
        token = token.get('token')
    try:
        user = authenticate(token)
    except AuthError as exc:
        current_app.logger.info(f"[auth-fail] sid={_get_sid()} reason={exc}")
        emit('authError', {'message': str(exc)})
        return
    emit('authenticated', user.to_dict())
    _arena().connect(user.username, _get_sid())


@authenticated
def handle_send_challenge(username, data):
    _arena().send_challenge(username, data.get('targetUsername'), data.get('symbol'))


@authenticated
def handle_respond_to_challenge(username, data):
    _arena().respond_to_challenge(
        username, _get_sid(), data.get('challengeId'), bool(data.get('accepted')), data.get('symbol')
    )


@authenticated
def handle_rps_choice(username, data):
    _arena().rps_choice(username, data.get('roomId'), data.get('choice'))


@authenticated
def handle_make_move(username, data):
    _arena().make_move(username, data.get('roomId'), data.get('position'))


@authenticated
def handle_send_message(username, data):
    _arena().send_message(username, data.get('roomId'), data.get('message'))


@authenticated
def handle_request_rematch(username, data):
    _arena().request_rematch(username, data.get('roomId'))


@authenticated
def handle_respond_to_rematch(username, data):
    _arena().respond_to_rematch(username, data.get('roomId'), data.get('accepted'))


@authenticated
def handle_leave_game(username, data):
    _arena().leave_game(username, data.get('roomId'))


@authenticated
def handle_find_match(username, data):
    _arena().find_match(username, _get_sid())


@authenticated
def handle_cancel_matchmaking(username, data):
    _arena().cancel_matchmaking(username)


@authenticated
def handle_match_symbol_chosen(username, data):
    _arena().choose_symbol(username, _get_sid(), data.get('matchId'), data.get('symbol'))


def handle_update_avatar(avatar=None):
    username = _current_username()
    if not username or not isinstance(avatar, str) or not avatar:
        return
    if stats.update_avatar(username, avatar):
        emit('avatarUpdated', avatar)


_HANDLERS = {
    'connect': handle_connect,
    'disconnect': handle_disconnect,
    'authenticate': handle_authenticate,
    'sendChallenge': handle_send_challenge,
    'respondToChallenge': handle_respond_to_challenge,
    'rpsChoice': handle_rps_choice,
    'makeMove': handle_make_move,
    'sendMessage': handle_send_message,
    'requestRematch': handle_request_rematch,
    'respondToRematch': handle_respond_to_rematch,
    'leaveGame': handle_leave_game,
    'updateAvatar': handle_update_avatar,
    'findMatch': handle_find_match,
    'cancelMatchmaking': handle_cancel_matchmaking,
    'matchSymbolChosen': handle_match_symbol_chosen,
}


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    for event, handler in _HANDLERS.items():
        socketio.on_event(event, handler, namespace=NAMESPACE)

    if testing:
        # Test-only mirror on default namespace
        for event, handler in _HANDLERS.items():
            socketio.on_event(event, handler, namespace='/')
