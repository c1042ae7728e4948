# Real-time notification relay over Socket.IO
import logging
from flask import current_app, request
from flask_socketio import SocketIO, join_room

logger = logging.getLogger(__name__)

socketio = SocketIO()

# user id -> socket ids connected to this process
user_socket_map = {}


def user_room(user_id):
    return f'user:{user_id}'


def connected_user_ids():
    return [user_id for user_id, sids in user_socket_map.items() if sids]


@socketio.on('connect')
def handle_connect(auth=None):
    user_id = request.args.get('userId')
    if not user_id:
        logger.debug("Socket %s connected without userId", request.sid)
        return
    user_socket_map.setdefault(user_id, set()).add(request.sid)
    join_room(user_room(user_id))
    logger.info("User %s connected on socket %s", user_id, request.sid)


@socketio.on('disconnect')
def handle_disconnect(*args):
    for user_id, sids in list(user_socket_map.items()):
        if request.sid in sids:
            sids.discard(request.sid)
            if not sids:
                del user_socket_map[user_id]
            logger.info("User %s disconnected from socket %s", user_id, request.sid)
            break


def emit_notification(notification):
    """Push a notification to its recipient's live sessions.

    Delivery is best effort. A recipient with no open socket simply misses
    the live event and picks the notification up from the REST endpoint.
    With a message queue configured the room emit also reaches sockets held
    by other server processes, so the local map only decides what gets logged.
    """
    recipient_id = str(notification.user_id)
    payload = notification.to_dict()
    if recipient_id not in user_socket_map and not current_app.config.get('SOCKETIO_MESSAGE_QUEUE'):
        logger.debug("User %s not connected, live notification %s dropped",
                     recipient_id, notification.notification_id)
        return False
    logger.debug("Emitting notification %s to user %s", notification.notification_id, recipient_id)
    socketio.emit('notification', payload, to=user_room(recipient_id))
    return True
