from duel.services.play.session import Phase


def _online(arena, *names):
    for name in names:
        arena.connect(name, f'sid-{name}')


def test_connect_and_disconnect_broadcast_presence(arena, notifier):
    _online(arena, 'alice', 'bob')
    snapshots = notifier.events('onlineUsers')
    assert len(snapshots) == 2
    assert {u['username'] for u in snapshots[-1]} == {'alice', 'bob'}

    arena.find_match('alice', 'sid-alice')
    assert arena.disconnect('sid-alice') == 'alice'
    assert not arena.queue.is_queued('alice')
    assert notifier.events('onlineUsers')[-1] == [{'username': 'bob', 'socketId': 'sid-bob'}]


def test_challenge_to_offline_user_is_dropped(arena, notifier):
    _online(arena, 'alice')
    notifier.clear()
    arena.send_challenge('alice', 'ghost', 'X')
    assert notifier.sent == []


def test_accepted_challenge_starts_playing_without_rps(arena, notifier):
    _online(arena, 'alice', 'bob')
    arena.send_challenge('alice', 'bob', 'X')
    received = notifier.events('challengeReceived', to='sid-bob')[0]
    assert received['challenger'] == 'alice'

    session = arena.respond_to_challenge('bob', 'sid-bob', received['challengeId'], True, 'O')
    assert session is not None
    assert session.phase == Phase.PLAYING
    assert session.current_player in ('alice', 'bob')
    assert session.players['alice']['symbol'] == 'X'
    assert session.players['bob']['symbol'] == 'O'
    for sid in ('sid-alice', 'sid-bob'):
        start = notifier.events('gameStart', to=sid)[0]
        assert start['roomId'] == session.room_id
        assert start['board'] == [None] * 9
    assert not notifier.events('rpsStart')

    # consumed once
    assert arena.respond_to_challenge('bob', 'sid-bob', received['challengeId'], True, 'O') is None


def test_declined_challenge_notifies_challenger(arena, notifier):
    _online(arena, 'alice', 'bob')
    arena.send_challenge('alice', 'bob', 'X')
    challenge_id = notifier.events('challengeReceived')[0]['challengeId']
    assert arena.respond_to_challenge('bob', 'sid-bob', challenge_id, False, None) is None
    assert notifier.events('challengeDeclined', to='sid-alice') == ['bob']
    assert arena.challenges.get(challenge_id) is None


def test_challenge_only_answerable_by_target(arena, notifier):
    _online(arena, 'alice', 'bob', 'carol')
    arena.send_challenge('alice', 'bob', 'X')
    challenge_id = notifier.events('challengeReceived')[0]['challengeId']
    assert arena.respond_to_challenge('carol', 'sid-carol', challenge_id, True, 'O') is None
    assert arena.challenges.get(challenge_id) is not None


def test_accepting_with_challengers_symbol_is_refused(arena, notifier):
    _online(arena, 'alice', 'bob')
    arena.send_challenge('alice', 'bob', 'X')
    challenge_id = notifier.events('challengeReceived')[0]['challengeId']
    assert arena.respond_to_challenge('bob', 'sid-bob', challenge_id, True, 'X') is None
    assert notifier.events('symbolTaken', to='sid-bob') == ['X']
    # still open, bob can pick another symbol
    assert arena.respond_to_challenge('bob', 'sid-bob', challenge_id, True, 'O') is not None


def test_matchmaking_to_rps_session(arena, notifier):
    _online(arena, 'alice', 'bob')
    arena.find_match('alice', 'sid-alice')
    assert not notifier.events('matchFound')
    arena.find_match('bob', 'sid-bob')

    found_a = notifier.events('matchFound', to='sid-alice')[0]
    found_b = notifier.events('matchFound', to='sid-bob')[0]
    assert found_a['opponent'] == 'bob' and found_b['opponent'] == 'alice'
    match_id = found_a['matchId']
    assert found_b['matchId'] == match_id

    assert arena.choose_symbol('alice', 'sid-alice', match_id, 'X') is None
    assert notifier.events('symbolAccepted', to='sid-alice') == ['X']

    assert arena.choose_symbol('bob', 'sid-bob', match_id, 'X') is None
    assert notifier.events('symbolTaken', to='sid-bob') == ['X']
    assert not notifier.events('symbolTaken', to='sid-alice')

    session = arena.choose_symbol('bob', 'sid-bob', match_id, 'O')
    assert session is not None
    assert session.room_id == match_id
    assert session.phase == Phase.RPS
    assert session.board == [None] * 9
    assert len(notifier.events('rpsStart')) == 2
    assert arena.sessions.get(match_id) is session


def test_cancel_matchmaking(arena, notifier):
    _online(arena, 'alice', 'bob')
    arena.find_match('alice', 'sid-alice')
    arena.cancel_matchmaking('alice')
    arena.find_match('bob', 'sid-bob')
    assert not notifier.events('matchFound')
    assert arena.queue.queued() == ['bob']


def test_room_operations_route_through_arena(arena, notifier, sink):
    _online(arena, 'alice', 'bob')
    arena.find_match('alice', 'sid-alice')
    arena.find_match('bob', 'sid-bob')
    match_id = notifier.events('matchFound')[0]['matchId']
    arena.choose_symbol('alice', 'sid-alice', match_id, 'X')
    arena.choose_symbol('bob', 'sid-bob', match_id, 'O')

    assert arena.rps_choice('alice', match_id, 'scissors')
    assert arena.rps_choice('bob', match_id, 'paper')
    session = arena.sessions.get(match_id)
    assert session.current_player == 'alice'

    assert not arena.make_move('alice', 'no-such-room', 0)
    assert not arena.make_move('alice', ['not', 'hashable'], 0)
    for user, pos in [('alice', 0), ('bob', 3), ('alice', 1), ('bob', 4), ('alice', 2)]:
        assert arena.make_move(user, match_id, pos)
    assert session.phase == Phase.FINISHED_WIN
    assert [(e.winner, e.loser) for e in sink.events] == [('alice', 'bob')]

    assert arena.send_message('bob', match_id, 'gg')
    assert arena.request_rematch('bob', match_id)
    assert arena.respond_to_rematch('alice', match_id, True)
    assert session.phase == Phase.PLAYING
    assert session.current_player == 'bob'


def test_leave_destroys_room(arena, notifier):
    _online(arena, 'alice', 'bob')
    arena.send_challenge('alice', 'bob', 'X')
    challenge_id = notifier.events('challengeReceived')[0]['challengeId']
    session = arena.respond_to_challenge('bob', 'sid-bob', challenge_id, True, 'O')

    assert not arena.leave_game('carol', session.room_id)
    assert arena.leave_game('alice', session.room_id)
    assert arena.sessions.get(session.room_id) is None
    assert session.closed
    assert notifier.events('opponentLeft', to='sid-bob')[0]['username'] == 'alice'
    assert not arena.make_move(session.current_player, session.room_id, 0)


def test_full_challenge_game_reports_one_win_and_one_loss(arena, notifier, sink):
    _online(arena, 'alice', 'bob')
    arena.send_challenge('alice', 'bob', 'X')
    challenge_id = notifier.events('challengeReceived')[0]['challengeId']
    session = arena.respond_to_challenge('bob', 'sid-bob', challenge_id, True, 'O')

    first = session.current_player
    second = session.opponent_of(first)
    arena.make_move(first, session.room_id, 4)
    expected = [None] * 9
    expected[4] = session.players[first]['symbol']
    assert session.board == expected
    assert session.current_player == second

    for user, pos in [(second, 0), (first, 3), (second, 1), (first, 5)]:
        assert arena.make_move(user, session.room_id, pos)
    assert session.phase == Phase.FINISHED_WIN
    assert len(sink.events) == 1
    assert (sink.events[0].winner, sink.events[0].loser) == (first, second)


def test_relogin_then_old_socket_closing_does_not_strand_queue_entry(arena, notifier):
    arena.connect('alice', 'sid-old')
    arena.find_match('alice', 'sid-old')
    arena.connect('alice', 'sid-new')
    assert not arena.queue.is_queued('alice')

    # the stale socket no longer maps to anyone
    assert arena.disconnect('sid-old') is None

    _online(arena, 'bob')
    arena.find_match('alice', 'sid-new')
    arena.find_match('bob', 'sid-bob')
    targets = sorted(to for event, _, to in notifier.sent if event == 'matchFound')
    assert targets == ['sid-bob', 'sid-new']
    assert arena.queue.queued() == []


def test_disconnect_discards_challenges_both_ways(arena, notifier):
    _online(arena, 'alice', 'bob', 'carol')
    for _ in range(3):
        arena.send_challenge('alice', 'bob', 'X')
    arena.send_challenge('carol', 'alice', 'O')
    assert len(arena.challenges) == 4
    stale_id = notifier.events('challengeReceived', to='sid-bob')[0]['challengeId']
    notifier.clear()

    arena.disconnect('sid-alice')
    assert len(arena.challenges) == 0
    # carol's challenge was never answered
    assert notifier.events('challengeDeclined', to='sid-carol') == ['alice']
    assert arena.respond_to_challenge('bob', 'sid-bob', stale_id, True, 'O') is None
    assert len(arena.sessions) == 0


def test_disconnect_cancels_symbol_negotiation(arena, notifier):
    _online(arena, 'carol', 'dave')
    arena.find_match('carol', 'sid-carol')
    arena.find_match('dave', 'sid-dave')
    match_id = notifier.events('matchFound')[0]['matchId']
    arena.choose_symbol('carol', 'sid-carol', match_id, 'X')

    arena.disconnect('sid-carol')
    assert arena.queue.pending(match_id) is None
    assert notifier.events('matchCancelled', to='sid-dave') == [{'matchId': match_id, 'opponent': 'carol'}]
    # dave's late choice goes nowhere
    assert arena.choose_symbol('dave', 'sid-dave', match_id, 'O') is None
    assert arena.sessions.get(match_id) is None

    arena.disconnect('sid-dave')
    assert arena.queue.pending_count() == 0
