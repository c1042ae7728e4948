# Routes for handling requests
import datetime
import logging
import secrets
from flask import Blueprint, request, jsonify
from flask_bcrypt import Bcrypt
from flask_jwt_extended import jwt_required, create_access_token, current_user
from sqlalchemy import or_, and_, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from models import db, User, Post, Comment, Like, Follower, Notification, Message
from forms import (
    registration_errors, login_errors, post_errors, comment_errors, profile_errors,
    password_change_errors, validate_password, MAX_MESSAGE_LENGTH
)
from mailer import EmailError, send_password_reset, send_bug_report, notify_new_message
from notify import emit_notification, connected_user_ids

logger = logging.getLogger(__name__)

bcrypt = Bcrypt()

RESET_TOKEN_LIFETIME = datetime.timedelta(hours=1)
USER_SEARCH_LIMIT = 50
MAX_PAGE_SIZE = 50

# Create blueprints for different route categories
main_bp = Blueprint('main', __name__)
auth_bp = Blueprint('auth', __name__)
posts_bp = Blueprint('posts', __name__)
users_bp = Blueprint('users', __name__)
notifications_bp = Blueprint('notifications', __name__)
messages_bp = Blueprint('messages', __name__)


def server_error(action):
    db.session.rollback()
    logger.exception("%s error", action)
    return jsonify({"message": "Server error"}), 500


def database_connected():
    try:
        db.session.execute(text('SELECT 1'))
        return True
    except SQLAlchemyError:
        db.session.rollback()
        logger.warning("Database ping failed", exc_info=True)
        return False


def check_db_connection():
    if not database_connected():
        return jsonify({
            "message": "Database not connected. Please ensure the database is running.",
            "error": "DATABASE_NOT_CONNECTED",
            "help": "Check DATABASE_URL and that the database server accepts connections"
        }), 503
    return None


for blueprint in (auth_bp, posts_bp, users_bp, notifications_bp, messages_bp):
    blueprint.before_request(check_db_connection)


def _iso(value):
    return value.isoformat() if value else None


def auth_payload(user):
    return {
        "id": user.user_id,
        "username": user.username,
        "email": user.email,
        "displayName": user.display_name
    }


def profile_payload(user):
    return {
        **auth_payload(user),
        "bio": user.bio,
        "skills": user.skills or [],
        "githubLink": user.github_link,
        "avatar": user.avatar,
        "isPrivate": user.is_private,
        "notificationPreferences": {
            "newFollower": user.notify_new_follower,
            "newComment": user.notify_new_comment,
            "newMessage": user.notify_new_message
        }
    }


def serialize_comment(comment):
    return {
        "id": comment.comment_id,
        "user": comment.author.summary(),
        "text": comment.text,
        "createdAt": _iso(comment.created_at),
        "updatedAt": _iso(comment.updated_at)
    }


def serialize_post(post):
    return {
        "id": post.post_id,
        "author": post.author.summary(),
        "content": post.content,
        "codeSnippet": post.code_snippet,
        "likes": [{"user": like.user_id} for like in post.likes.order_by(Like.created_at.asc())],
        "comments": [serialize_comment(comment) for comment in post.visible_comments()],
        "createdAt": _iso(post.created_at),
        "updatedAt": _iso(post.updated_at)
    }


def serialize_notification(notification):
    post = notification.post
    return {
        **notification.to_dict(),
        "fromUser": notification.from_user.summary() if notification.from_user else None,
        "post": {"id": post.post_id, "content": post.content} if post else None
    }


# Health Endpoints
@main_bp.route('/health', methods=['GET'])
def health():
    connected = database_connected()
    return jsonify({
        "status": "OK",
        "timestamp": datetime.datetime.utcnow().isoformat(),
        "database": "Connected" if connected else "Disconnected",
        "message": "All systems operational" if connected else "Database connection required",
        "liveConnections": len(connected_user_ids())
    }), 200


@main_bp.route('/db-status', methods=['GET'])
def db_status():
    connected = database_connected()
    return jsonify({
        "connected": connected,
        "status": "Connected to database" if connected else "Database not connected",
        "help": None if connected else "Please start the database service"
    }), 200


@main_bp.route('/report-bug', methods=['POST'])
def report_bug():
    data = request.get_json(silent=True) or {}
    bug = data.get('bug')
    if not isinstance(bug, str) or len(bug) < 5:
        return jsonify({"message": "Please provide a valid bug description."}), 400
    try:
        send_bug_report(bug)
    except EmailError:
        return jsonify({"message": "Failed to send bug report."}), 500
    return jsonify({"message": "Bug report sent successfully."}), 200


# Authentication Endpoints
@auth_bp.route('/register', methods=['POST'])
def handle_register():
    """User Registration Endpoint"""
    data = request.get_json(silent=True) or {}

    errors = registration_errors(data)
    if errors:
        return jsonify({"errors": errors}), 400

    username = data['username']
    email = data['email'].strip().lower()

    existing_user = User.query.filter(or_(User.email == email, User.username == username)).first()
    if existing_user:
        message = "User with this email already exists" if existing_user.email == email \
            else "Username already taken"
        return jsonify({"message": message}), 400

    hashed_password = bcrypt.generate_password_hash(data['password']).decode('utf-8')
    new_user = User(username=username, email=email, password_hash=hashed_password)

    try:
        db.session.add(new_user)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"message": "Username or email already exists"}), 400
    except SQLAlchemyError:
        return server_error("Registration")

    access_token = create_access_token(identity=str(new_user.user_id))
    return jsonify({"token": access_token, "user": auth_payload(new_user)}), 201


@auth_bp.route('/login', methods=['POST'])
def handle_login():
    """User Login Endpoint"""
    data = request.get_json(silent=True) or {}

    errors = login_errors(data)
    if errors:
        return jsonify({"errors": errors}), 400

    user = User.query.filter_by(email=data['email'].strip().lower()).first()

    if user and bcrypt.check_password_hash(user.password_hash, data['password']):
        access_token = create_access_token(identity=str(user.user_id))
        return jsonify({"token": access_token, "user": auth_payload(user)}), 200

    return jsonify({"message": "Invalid credentials"}), 400


@auth_bp.route('/me', methods=['GET'])
@jwt_required()
def get_me():
    return jsonify(profile_payload(current_user)), 200


@auth_bp.route('/forgot-password', methods=['POST'])
def forgot_password():
    data = request.get_json(silent=True) or {}
    email = data.get('email')
    email = email.strip().lower() if isinstance(email, str) else ''

    user = User.query.filter_by(email=email).first() if email else None
    if not user:
        return jsonify({"message": "No user with that email."}), 404

    token = secrets.token_hex(32)
    try:
        user.reset_password_token = token
        user.reset_password_expires = datetime.datetime.utcnow() + RESET_TOKEN_LIFETIME
        db.session.commit()
    except SQLAlchemyError:
        return server_error("Forgot password")

    try:
        send_password_reset(user, token)
    except EmailError:
        return jsonify({"message": "Server error"}), 500

    return jsonify({"message": "Password reset email sent."}), 200


@auth_bp.route('/reset-password', methods=['POST'])
def reset_password():
    data = request.get_json(silent=True) or {}
    token = data.get('token')
    password = data.get('password')

    if not validate_password(password):
        return jsonify({"errors": [
            {"param": "password", "msg": "Password must be at least 6 characters long"}
        ]}), 400

    user = User.query.filter(
        User.reset_password_token == token,
        User.reset_password_expires > datetime.datetime.utcnow()
    ).first() if isinstance(token, str) and token else None
    if not user:
        return jsonify({"message": "Invalid or expired token."}), 400

    try:
        user.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')
        user.reset_password_token = None
        user.reset_password_expires = None
        db.session.commit()
    except SQLAlchemyError:
        return server_error("Reset password")

    return jsonify({"message": "Password has been reset."}), 200


@auth_bp.route('/ping', methods=['GET'])
@jwt_required()
def ping():
    """Keep-alive endpoint polled by the client"""
    return jsonify({
        "message": "Server is alive",
        "timestamp": datetime.datetime.utcnow().isoformat(),
        "user": current_user.username
    }), 200


# Post Endpoints
@posts_bp.route('', methods=['GET'])
def get_posts():
    page = max(request.args.get('page', 1, type=int), 1)
    limit = min(max(request.args.get('limit', 10, type=int), 1), MAX_PAGE_SIZE)

    pagination = Post.query.order_by(Post.created_at.desc(), Post.post_id.desc())\
        .paginate(page=page, per_page=limit, error_out=False)

    return jsonify({
        "posts": [serialize_post(post) for post in pagination.items],
        "pagination": {
            "current": page,
            "pages": pagination.pages,
            "total": pagination.total
        }
    }), 200


@posts_bp.route('/<int:post_id>', methods=['GET'])
def get_post(post_id):
    post = db.session.get(Post, post_id)
    if not post:
        return jsonify({"message": "Post not found"}), 404
    return jsonify(serialize_post(post)), 200


@posts_bp.route('', methods=['POST'])
@jwt_required()
def create_post():
    data = request.get_json(silent=True) or {}

    errors = post_errors(data)
    if errors:
        return jsonify({"errors": errors}), 400

    new_post = Post(
        user_id=current_user.user_id,
        content=data['content'],
        code_snippet=data.get('codeSnippet') or ''
    )

    try:
        db.session.add(new_post)
        db.session.commit()
    except SQLAlchemyError:
        return server_error("Create post")

    return jsonify(serialize_post(new_post)), 201


@posts_bp.route('/<int:post_id>/like', methods=['PUT'])
@jwt_required()
def toggle_like(post_id):
    post = db.session.get(Post, post_id)
    if not post:
        return jsonify({"message": "Post not found"}), 404

    user_id = current_user.user_id
    existing_like = Like.query.filter_by(post_id=post_id, user_id=user_id).first()
    notification = None

    try:
        if existing_like:
            # Unlike the post
            db.session.delete(existing_like)
        else:
            db.session.add(Like(post_id=post_id, user_id=user_id))
            if post.user_id != user_id:
                notification = Notification(user_id=post.user_id, type='like',
                                            from_user_id=user_id, post_id=post_id)
                db.session.add(notification)
        db.session.commit()
    except IntegrityError:
        # a concurrent request already stored this like
        db.session.rollback()
        logger.info("Duplicate like by user %s on post %s ignored", user_id, post_id)
        notification = None
    except SQLAlchemyError:
        return server_error("Like post")

    if notification:
        emit_notification(notification)

    return jsonify(serialize_post(post)), 200


@posts_bp.route('/<int:post_id>/comment', methods=['POST'])
@jwt_required()
def add_comment(post_id):
    data = request.get_json(silent=True) or {}

    errors = comment_errors(data)
    if errors:
        return jsonify({"errors": errors}), 400

    post = db.session.get(Post, post_id)
    if not post:
        return jsonify({"message": "Post not found"}), 404

    user_id = current_user.user_id
    notification = None
    try:
        db.session.add(Comment(post_id=post_id, user_id=user_id, text=data['text']))
        if post.user_id != user_id:
            notification = Notification(user_id=post.user_id, type='comment',
                                        from_user_id=user_id, post_id=post_id)
            db.session.add(notification)
        db.session.commit()
    except SQLAlchemyError:
        return server_error("Add comment")

    if notification:
        emit_notification(notification)

    return jsonify(serialize_post(post)), 200


def _find_comment(post_id, comment_id):
    post = db.session.get(Post, post_id)
    if not post:
        return None, None
    comment = Comment.query.filter_by(comment_id=comment_id, post_id=post_id, deleted=False).first()
    return post, comment


@posts_bp.route('/<int:post_id>/comment/<int:comment_id>', methods=['PUT'])
@jwt_required()
def edit_comment(post_id, comment_id):
    post, comment = _find_comment(post_id, comment_id)
    if not post:
        return jsonify({"message": "Post not found"}), 404
    if not comment:
        return jsonify({"message": "Comment not found"}), 404
    if comment.user_id != current_user.user_id:
        return jsonify({"message": "Access denied"}), 403

    data = request.get_json(silent=True) or {}
    errors = comment_errors(data)
    if errors:
        return jsonify({"errors": errors}), 400

    try:
        comment.text = data['text']
        comment.updated_at = datetime.datetime.utcnow()
        db.session.commit()
    except SQLAlchemyError:
        return server_error("Edit comment")

    return jsonify(serialize_post(post)), 200


@posts_bp.route('/<int:post_id>/comment/<int:comment_id>', methods=['DELETE'])
@jwt_required()
def delete_comment(post_id, comment_id):
    post, comment = _find_comment(post_id, comment_id)
    if not post:
        return jsonify({"message": "Post not found"}), 404
    if not comment:
        return jsonify({"message": "Comment not found"}), 404
    if current_user.user_id not in (comment.user_id, post.user_id):
        return jsonify({"message": "Access denied"}), 403

    try:
        comment.deleted = True
        db.session.commit()
    except SQLAlchemyError:
        return server_error("Delete comment")

    return jsonify(serialize_post(post)), 200


def _purge_post_rows(post_ids):
    if not post_ids:
        return
    for model in (Like, Comment, Notification):
        model.query.filter(model.post_id.in_(post_ids)).delete(synchronize_session=False)


@posts_bp.route('/<int:post_id>', methods=['DELETE'])
@jwt_required()
def delete_post(post_id):
    post = db.session.get(Post, post_id)
    if not post:
        return jsonify({"message": "Post not found"}), 404
    if post.user_id != current_user.user_id:
        return jsonify({"message": "Access denied"}), 403

    try:
        _purge_post_rows([post_id])
        db.session.delete(post)
        db.session.commit()
    except SQLAlchemyError:
        return server_error("Delete post")

    return jsonify({"message": "Post deleted successfully"}), 200


# User Endpoints
@users_bp.route('', methods=['GET'])
def search_users():
    search = request.args.get('search', '').strip()
    skill = request.args.get('skill', '').strip().lower()

    query = User.query
    if search:
        pattern = f'%{search}%'
        query = query.filter(or_(User.username.ilike(pattern), User.display_name.ilike(pattern)))

    query = query.order_by(User.created_at.desc(), User.user_id.desc())
    if skill:
        users = [user for user in query if any(skill in s.lower() for s in user.skills or [])]
    else:
        users = query.limit(USER_SEARCH_LIMIT).all()

    return jsonify([{
        "id": user.user_id,
        "username": user.username,
        "displayName": user.display_name,
        "bio": user.bio,
        "skills": user.skills or [],
        "githubLink": user.github_link,
        "createdAt": _iso(user.created_at)
    } for user in users[:USER_SEARCH_LIMIT]]), 200


@users_bp.route('/<username>', methods=['GET'])
def get_user_profile(username):
    user = User.query.filter_by(username=username).first()
    if not user:
        return jsonify({"message": "User not found"}), 404

    posts = user.posts.order_by(Post.created_at.desc(), Post.post_id.desc()).all()

    return jsonify({
        "user": {
            "id": user.user_id,
            "username": user.username,
            "displayName": user.display_name,
            "bio": user.bio,
            "skills": user.skills or [],
            "githubLink": user.github_link,
            "createdAt": _iso(user.created_at),
            "followers": [follower.summary() for follower in user.followers()],
            "following": [followed.summary() for followed in user.following()]
        },
        "posts": [serialize_post(post) for post in posts]
    }), 200


@users_bp.route('/<int:user_id>', methods=['PUT'])
@jwt_required()
def update_user_profile(user_id):
    """Update current user's profile"""
    data = request.get_json(silent=True) or {}

    errors = profile_errors(data)
    if errors:
        return jsonify({"errors": errors}), 400

    if current_user.user_id != user_id:
        return jsonify({"message": "Access denied"}), 403

    user = current_user
    try:
        if 'displayName' in data:
            user.display_name = data['displayName']
        if 'bio' in data:
            user.bio = data['bio']
        if 'skills' in data:
            user.skills = [skill.strip() for skill in data['skills'] if skill.strip()]
        if 'githubLink' in data:
            user.github_link = data['githubLink']
        preferences = data.get('notificationPreferences') or {}
        if 'newFollower' in preferences:
            user.notify_new_follower = preferences['newFollower']
        if 'newComment' in preferences:
            user.notify_new_comment = preferences['newComment']
        if 'newMessage' in preferences:
            user.notify_new_message = preferences['newMessage']
        db.session.commit()
    except SQLAlchemyError:
        return server_error("Update user")

    return jsonify(profile_payload(user)), 200


@users_bp.route('/<int:user_id>/password', methods=['PUT'])
@jwt_required()
def change_password(user_id):
    data = request.get_json(silent=True) or {}

    errors = password_change_errors(data)
    if errors:
        return jsonify({"errors": errors}), 400

    if current_user.user_id != user_id:
        return jsonify({"message": "Access denied"}), 403

    if not bcrypt.check_password_hash(current_user.password_hash, data['currentPassword']):
        return jsonify({"message": "Current password is incorrect"}), 400

    try:
        current_user.password_hash = bcrypt.generate_password_hash(data['newPassword']).decode('utf-8')
        db.session.commit()
    except SQLAlchemyError:
        return server_error("Change password")

    return jsonify({"message": "Password updated successfully"}), 200


@users_bp.route('/<username>/follow', methods=['PUT'])
@jwt_required()
def follow_user(username):
    target_user = User.query.filter_by(username=username).first()
    if not target_user:
        return jsonify({"message": "User not found"}), 404

    # Don't allow following yourself
    if target_user.user_id == current_user.user_id:
        return jsonify({"message": "Cannot follow yourself"}), 400

    if current_user.is_following(target_user):
        return jsonify({"message": "Already following"}), 400

    notification = None
    try:
        db.session.add(Follower(follower_user_id=current_user.user_id,
                                followed_user_id=target_user.user_id))
        if target_user.notify_new_follower:
            notification = Notification(user_id=target_user.user_id, type='follow',
                                        from_user_id=current_user.user_id)
            db.session.add(notification)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"message": "Already following"}), 400
    except SQLAlchemyError:
        return server_error("Follow")

    if notification:
        emit_notification(notification)

    return jsonify({"message": "Followed successfully"}), 200


@users_bp.route('/<username>/unfollow', methods=['PUT'])
@jwt_required()
def unfollow_user(username):
    target_user = User.query.filter_by(username=username).first()
    if not target_user:
        return jsonify({"message": "User not found"}), 404

    if target_user.user_id == current_user.user_id:
        return jsonify({"message": "Cannot unfollow yourself"}), 400

    try:
        Follower.query.filter_by(
            follower_user_id=current_user.user_id,
            followed_user_id=target_user.user_id
        ).delete()
        db.session.commit()
    except SQLAlchemyError:
        return server_error("Unfollow")

    return jsonify({"message": "Unfollowed successfully"}), 200


@users_bp.route('/<username>/followers', methods=['GET'])
def get_followers(username):
    user = User.query.filter_by(username=username).first()
    if not user:
        return jsonify({"message": "User not found"}), 404
    return jsonify({"followers": [follower.summary() for follower in user.followers()]}), 200


@users_bp.route('/<username>/following', methods=['GET'])
def get_following(username):
    user = User.query.filter_by(username=username).first()
    if not user:
        return jsonify({"message": "User not found"}), 404
    return jsonify({"following": [followed.summary() for followed in user.following()]}), 200


@users_bp.route('/<int:user_id>', methods=['DELETE'])
@jwt_required()
def delete_account(user_id):
    if current_user.user_id != user_id:
        return jsonify({"message": "Access denied"}), 403

    try:
        post_ids = [row.post_id for row in db.session.query(Post.post_id).filter_by(user_id=user_id)]
        _purge_post_rows(post_ids)
        Like.query.filter_by(user_id=user_id).delete(synchronize_session=False)
        Comment.query.filter_by(user_id=user_id).delete(synchronize_session=False)
        Notification.query.filter(or_(Notification.user_id == user_id,
                                      Notification.from_user_id == user_id))\
            .delete(synchronize_session=False)
        Follower.query.filter(or_(Follower.follower_user_id == user_id,
                                  Follower.followed_user_id == user_id))\
            .delete(synchronize_session=False)
        Message.query.filter(or_(Message.sender_id == user_id,
                                 Message.recipient_id == user_id))\
            .delete(synchronize_session=False)
        Post.query.filter_by(user_id=user_id).delete(synchronize_session=False)
        db.session.delete(db.session.get(User, user_id))
        db.session.commit()
    except SQLAlchemyError:
        return server_error("Delete user")

    return jsonify({"message": "Account deleted successfully"}), 200


# Notification Endpoints
@notifications_bp.route('', methods=['GET'])
@jwt_required()
def get_notifications():
    notifications = Notification.query.filter_by(user_id=current_user.user_id)\
        .order_by(Notification.created_at.desc(), Notification.notification_id.desc())\
        .all()
    return jsonify([serialize_notification(n) for n in notifications]), 200


@notifications_bp.route('/mark-all-read', methods=['PUT'])
@jwt_required()
def mark_all_read():
    try:
        updated = Notification.query.filter_by(user_id=current_user.user_id, read=False)\
            .update({"read": True}, synchronize_session=False)
        db.session.commit()
    except SQLAlchemyError:
        return server_error("Mark all as read")

    logger.debug("Marked %s notifications read for user %s", updated, current_user.user_id)
    return jsonify({"message": "All notifications marked as read", "updated": updated}), 200


@notifications_bp.route('/all', methods=['DELETE'])
@jwt_required()
def delete_all_notifications():
    try:
        deleted = Notification.query.filter_by(user_id=current_user.user_id)\
            .delete(synchronize_session=False)
        db.session.commit()
    except SQLAlchemyError:
        return server_error("Delete all notifications")

    return jsonify({"message": "All notifications deleted", "deleted": deleted}), 200


# Message Endpoints
@messages_bp.route('', methods=['POST'])
@jwt_required()
def send_message():
    data = request.get_json(silent=True) or {}
    recipient_id = data.get('recipientId')
    message_text = data.get('text')

    if not recipient_id or not isinstance(message_text, str) or not message_text.strip():
        return jsonify({"message": "Recipient and text are required"}), 400

    message_text = message_text.strip()
    if len(message_text) > MAX_MESSAGE_LENGTH:
        return jsonify({"message": "Message must be at most 2000 characters"}), 400

    try:
        recipient = db.session.get(User, int(recipient_id))
    except (TypeError, ValueError):
        recipient = None
    if not recipient:
        return jsonify({"message": "Recipient not found"}), 404

    message = Message(sender_id=current_user.user_id, recipient_id=recipient.user_id, text=message_text)
    try:
        db.session.add(message)
        db.session.commit()
    except SQLAlchemyError:
        return server_error("Send message")

    notify_new_message(recipient, current_user, message_text)

    return jsonify(message.to_dict()), 201


@messages_bp.route('/<int:other_user_id>', methods=['GET'])
@jwt_required()
def get_conversation(other_user_id):
    user_id = current_user.user_id
    messages = Message.query.filter(or_(
        and_(Message.sender_id == user_id, Message.recipient_id == other_user_id),
        and_(Message.sender_id == other_user_id, Message.recipient_id == user_id)
    )).order_by(Message.created_at.asc(), Message.message_id.asc()).all()
    return jsonify([message.to_dict() for message in messages]), 200
