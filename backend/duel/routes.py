from flask import Blueprint, current_app, request, jsonify
from flask_login import login_user, logout_user
from duel import db
from duel.models import User
from duel.services.auth import issue_token
from duel.services.stats import leaderboard_top

main = Blueprint('main', __name__)

@main.route('/register', methods=['POST'])
def register():
    data = request.get_json(silent=True) or {}
    username = data.get('username')
    password = data.get('password')
    if not isinstance(username, str) or not isinstance(password, str) or not username or not password:
        return jsonify({'error': 'Missing username or password'}), 400

    if User.query.filter_by(username=username).first():
        return jsonify({'error': 'Username already exists'}), 400

    user = User(username=username)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    current_app.logger.info(f"[register] user={username}")

    return jsonify({'message': 'User registered successfully'}), 201

@main.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    password = data.get('password')
    user = User.query.filter_by(username=data.get('username')).first()
    if user and isinstance(password, str) and user.check_password(password):
        login_user(user, remember=True)
        return jsonify({'token': issue_token(user.username), 'user': user.to_dict()})
    return jsonify({'error': 'Invalid credentials'}), 401

@main.route('/logout', methods=['POST'])
def logout():
    logout_user()
    return jsonify({'message': 'Logged out successfully.'})

@main.route('/leaderboard', methods=['GET'])
def leaderboard():
    limit = int(current_app.config.get('LEADERBOARD_SIZE', 10))
    return jsonify(leaderboard_top(limit))
