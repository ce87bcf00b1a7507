from typing import Optional

from duel.exceptions import SymbolTaken
from .challenges import ChallengeBroker
from .ids import new_id
from .matchmaking import MatchmakingQueue
from .presence import PresenceRegistry
from .session import GameSession, PlayContext, SessionStore


class Arena:
    """Everything a connected player can do, keyed by username and sid.

    Stale ids and out-of-turn or out-of-phase requests are dropped without a
    reply; the client is expected to have moved on already.
    """

    def __init__(self, ctx: PlayContext):
        self.ctx = ctx
        self.presence = PresenceRegistry()
        self.queue = MatchmakingQueue()
        self.challenges = ChallengeBroker()
        self.sessions = SessionStore()

    @property
    def notifier(self):
        return self.ctx.notifier

    @property
    def logger(self):
        return self.ctx.logger

    # ---- presence ----

    def connect(self, username: str, sid: str) -> None:
        displaced = self.presence.find(username)
        snapshot = self.presence.register(username, sid)
        if displaced and displaced != sid:
            # The old socket will never be resolved to this user again,
            # so nothing it queued for may outlive it
            self.queue.cancel(username)
            self.logger.info(f"[presence] relogin user={username} old_sid={displaced} sid={sid}")
        self.logger.info(f"[presence] online user={username} sid={sid}")
        self.notifier.broadcast('onlineUsers', snapshot)

    def disconnect(self, sid: str) -> Optional[str]:
        username, snapshot = self.presence.unregister(sid)
        if username:
            self.queue.cancel(username)
            self._discard_pending(username)
            self.logger.info(f"[presence] offline user={username} sid={sid}")
        self.notifier.broadcast('onlineUsers', snapshot)
        return username

    def _discard_pending(self, username: str) -> None:
        """Drop the challenges and unfinished symbol negotiations of a departed user."""
        for challenge in self.challenges.drop_user(username):
            if challenge.challenged != username:
                continue
            challenger_sid = self.presence.find(challenge.challenger)
            if challenger_sid:
                self.notifier.emit('challengeDeclined', username, to=challenger_sid)
        for match in self.queue.drop_user(username):
            opponent = match.opponent_of(username)
            self.logger.info(f"[match-cancelled] match={match.id} left={username}")
            self.notifier.emit('matchCancelled', {
                'matchId': match.id,
                'opponent': username,
            }, to=match.players[opponent]['sid'])

    # ---- challenges ----

    def send_challenge(self, challenger: str, target: str, symbol) -> None:
        if not isinstance(target, str) or not isinstance(symbol, str) or not symbol or target == challenger:
            return
        target_sid = self.presence.find(target)
        if not target_sid:
            self.logger.debug(f"[challenge-drop] from={challenger} to={target} reason=offline")
            return
        challenge = self.challenges.create(challenger, target, symbol)
        self.notifier.emit('challengeReceived', {
            'challengeId': challenge.id,
            'challenger': challenger,
            'symbol': symbol,
        }, to=target_sid)

    def respond_to_challenge(self, responder: str, responder_sid: str, challenge_id, accepted, symbol) -> Optional[GameSession]:
        if not isinstance(challenge_id, str):
            return None
        pending = self.challenges.get(challenge_id)
        if accepted and pending and pending.challenged == responder:
            if not isinstance(symbol, str) or not symbol or symbol == pending.challenger_symbol:
                # One symbol for both players would make the winner ambiguous; let them pick again
                self.notifier.emit('symbolTaken', symbol, to=responder_sid)
                return None
        challenge = self.challenges.take(challenge_id, responder)
        if not challenge:
            return None
        challenger_sid = self.presence.find(challenge.challenger)
        if not challenger_sid:
            self.logger.debug(f"[challenge-drop] id={challenge.id} reason=challenger-offline")
            return None
        if not accepted:
            self.notifier.emit('challengeDeclined', challenge.challenged, to=challenger_sid)
            return None

        session = self.sessions.add(GameSession(new_id('game'), {
            challenge.challenger: {'symbol': challenge.challenger_symbol, 'sid': challenger_sid},
            challenge.challenged: {'symbol': symbol, 'sid': responder_sid},
        }, self.ctx))
        first = self.ctx.rng.choice((challenge.challenger, challenge.challenged))
        session.start_play(first)
        return session

    # ---- matchmaking ----

    def find_match(self, username: str, sid: str) -> None:
        match = self.queue.enqueue(username, sid)
        if not match:
            return
        self.logger.info(f"[match-found] match={match.id} players={list(match.players)}")
        for player, entry in match.players.items():
            self.notifier.emit('matchFound', {
                'matchId': match.id,
                'opponent': match.opponent_of(player),
            }, to=entry['sid'])

    def cancel_matchmaking(self, username: str) -> None:
        self.queue.cancel(username)

    def choose_symbol(self, username: str, sid: str, match_id, symbol) -> Optional[GameSession]:
        if not isinstance(match_id, str) or not isinstance(symbol, str) or not symbol:
            return None
        try:
            match = self.queue.choose_symbol(match_id, username, symbol)
        except SymbolTaken as exc:
            self.notifier.emit('symbolTaken', exc.symbol, to=sid)
            return None
        if not match:
            return None
        self.notifier.emit('symbolAccepted', symbol, to=sid)
        if not match.complete:
            return None
        session = self.sessions.add(GameSession(match.id, match.players, self.ctx))
        session.start_rps()
        return session

    # ---- rooms ----

    def _room_for(self, username: str, room_id) -> Optional[GameSession]:
        if not isinstance(room_id, str):
            return None
        session = self.sessions.get(room_id)
        if not session or username not in session.players:
            return None
        return session

    def rps_choice(self, username: str, room_id, choice) -> bool:
        session = self._room_for(username, room_id)
        return bool(session) and session.submit_rps(username, choice)

    def make_move(self, username: str, room_id, position) -> bool:
        session = self._room_for(username, room_id)
        return bool(session) and session.make_move(username, position)

    def send_message(self, username: str, room_id, message) -> bool:
        session = self._room_for(username, room_id)
        return bool(session) and session.send_message(username, message)

    def request_rematch(self, username: str, room_id) -> bool:
        session = self._room_for(username, room_id)
        return bool(session) and session.request_rematch(username)

    def respond_to_rematch(self, username: str, room_id, accepted) -> bool:
        session = self._room_for(username, room_id)
        return bool(session) and session.respond_rematch(username, bool(accepted))

    def leave_game(self, username: str, room_id) -> bool:
        session = self._room_for(username, room_id)
        if not session:
            return False
        self.sessions.remove(session.room_id)
        session.close()
        self.logger.info(f"[room-closed] room={session.room_id} left_by={username}")
        opponent = session.opponent_of(username)
        if opponent:
            session.send_to(opponent, 'opponentLeft', {'roomId': session.room_id, 'username': username})
        return True
