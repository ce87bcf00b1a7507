from duel import db, bcrypt
from flask_login import UserMixin


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    wins = db.Column(db.Integer, default=0, nullable=False)
    losses = db.Column(db.Integer, default=0, nullable=False)
    draws = db.Column(db.Integer, default=0, nullable=False)
    avatar = db.Column(db.String(64), nullable=True)

    def __init__(self, **kwargs):
        super(User, self).__init__(**kwargs)
        # Column defaults only apply on flush; keep counters usable before that
        for counter in ('wins', 'losses', 'draws'):
            if getattr(self, counter) is None:
                setattr(self, counter, 0)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'wins': self.wins,
            'losses': self.losses,
            'draws': self.draws,
            'avatar': self.avatar,
        }

    def to_leaderboard_dict(self):
        return {
            'username': self.username,
            'wins': self.wins,
            'losses': self.losses,
            'draws': self.draws,
        }

    @classmethod
    def leaderboard(cls, limit=10):
        """Top users ordered by wins, ties broken by fewest losses."""
        return (
            cls.query
            .order_by(cls.wins.desc(), cls.losses.asc(), cls.username.asc())
            .limit(limit)
            .all()
        )
