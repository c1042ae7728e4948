# Database models
from flask_sqlalchemy import SQLAlchemy
from datetime import datetime

db = SQLAlchemy()

NOTIFICATION_TYPES = ('like', 'comment', 'follow')


class User(db.Model):
    __tablename__ = 'Users'
    user_id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(30), unique=True, nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    display_name = db.Column(db.String(50))
    bio = db.Column(db.String(500), nullable=False, default='')
    skills = db.Column(db.JSON, nullable=False, default=list)
    github_link = db.Column(db.String(255), nullable=False, default='')
    avatar = db.Column(db.String(255), nullable=False, default='')
    notify_new_follower = db.Column(db.Boolean, nullable=False, default=True)
    notify_new_comment = db.Column(db.Boolean, nullable=False, default=True)
    notify_new_message = db.Column(db.Boolean, nullable=False, default=True)
    is_private = db.Column(db.Boolean, nullable=False, default=False)
    reset_password_token = db.Column(db.String(64), index=True)
    reset_password_expires = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    posts = db.relationship('Post', backref='author', lazy='dynamic', cascade='all, delete-orphan')
    comments = db.relationship('Comment', backref='author', lazy='dynamic', cascade='all, delete-orphan')
    likes = db.relationship('Like', backref='user', lazy='dynamic', cascade='all, delete-orphan')
    notifications = db.relationship('Notification', foreign_keys='Notification.user_id',
                                    backref='recipient', lazy='dynamic', cascade='all, delete-orphan')

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if not self.display_name:
            self.display_name = self.username

    def summary(self):
        return {
            "id": self.user_id,
            "username": self.username,
            "displayName": self.display_name
        }

    def followers(self):
        return User.query.join(Follower, User.user_id == Follower.follower_user_id)\
            .filter(Follower.followed_user_id == self.user_id)\
            .order_by(Follower.created_at.asc())\
            .all()

    def following(self):
        return User.query.join(Follower, User.user_id == Follower.followed_user_id)\
            .filter(Follower.follower_user_id == self.user_id)\
            .order_by(Follower.created_at.asc())\
            .all()

    def is_following(self, other):
        return Follower.query.filter_by(
            follower_user_id=self.user_id,
            followed_user_id=other.user_id
        ).first() is not None


class Post(db.Model):
    __tablename__ = 'Posts'
    post_id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('Users.user_id'), nullable=False)
    content = db.Column(db.Text, nullable=False)
    code_snippet = db.Column(db.Text, nullable=False, default='')
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    comments = db.relationship('Comment', backref='post', lazy='dynamic', cascade='all, delete-orphan')
    likes = db.relationship('Like', backref='post', lazy='dynamic', cascade='all, delete-orphan')
    notifications = db.relationship('Notification', backref='post', lazy='dynamic', cascade='all, delete-orphan')

    def visible_comments(self):
        return self.comments.filter_by(deleted=False).order_by(Comment.created_at.asc()).all()


class Comment(db.Model):
    __tablename__ = 'Comments'
    comment_id = db.Column(db.Integer, primary_key=True)
    post_id = db.Column(db.Integer, db.ForeignKey('Posts.post_id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('Users.user_id'), nullable=False)
    text = db.Column(db.String(500), nullable=False)
    deleted = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow)


class Like(db.Model):
    __tablename__ = 'Likes'
    __table_args__ = (db.UniqueConstraint('post_id', 'user_id', name='uq_like_post_user'),)
    like_id = db.Column(db.Integer, primary_key=True)
    post_id = db.Column(db.Integer, db.ForeignKey('Posts.post_id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('Users.user_id'), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)


class Follower(db.Model):
    __tablename__ = 'Followers'
    __table_args__ = (db.UniqueConstraint('follower_user_id', 'followed_user_id', name='uq_follow_pair'),)
    follower_id = db.Column(db.Integer, primary_key=True)
    follower_user_id = db.Column(db.Integer, db.ForeignKey('Users.user_id'), nullable=False)
    followed_user_id = db.Column(db.Integer, db.ForeignKey('Users.user_id'), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)


class Notification(db.Model):
    __tablename__ = 'Notifications'
    notification_id = db.Column(db.Integer, primary_key=True)
    # recipient
    user_id = db.Column(db.Integer, db.ForeignKey('Users.user_id'), nullable=False, index=True)
    type = db.Column(db.Enum(*NOTIFICATION_TYPES, name='notification_type'), nullable=False)
    from_user_id = db.Column(db.Integer, db.ForeignKey('Users.user_id'))
    post_id = db.Column(db.Integer, db.ForeignKey('Posts.post_id'))
    read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    from_user = db.relationship('User', foreign_keys=[from_user_id])

    def to_dict(self):
        """Document shape pushed over the live channel."""
        return {
            "id": self.notification_id,
            "user": self.user_id,
            "type": self.type,
            "fromUser": self.from_user_id,
            "post": self.post_id,
            "read": self.read,
            "createdAt": self.created_at.isoformat() if self.created_at else None
        }


class Message(db.Model):
    __tablename__ = 'Messages'
    message_id = db.Column(db.Integer, primary_key=True)
    sender_id = db.Column(db.Integer, db.ForeignKey('Users.user_id'), nullable=False)
    recipient_id = db.Column(db.Integer, db.ForeignKey('Users.user_id'), nullable=False)
    text = db.Column(db.String(2000), nullable=False)
    read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.message_id,
            "sender": self.sender_id,
            "recipient": self.recipient_id,
            "text": self.text,
            "read": self.read,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat()
        }
