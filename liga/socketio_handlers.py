"""
SocketIO event handlers for live standings and prode notifications
"""

import logging
from datetime import datetime, timezone

from flask import request
from flask_login import current_user
from flask_socketio import disconnect, emit, join_room, leave_room

from liga import socketio
from liga.errors import LeagueError
from liga.repository import LeagueRepository
from liga.services.standings import ranked_zone_table

logger = logging.getLogger(__name__)

STANDINGS_NAMESPACE = "/standings"
NOTIFICATIONS_NAMESPACE = "/notifications"

# Connected clients and their zone rooms
connected_clients = {}


def zone_room(zone_id):
    return f"zone_{zone_id}"


def user_room(user_id):
    return f"user_{user_id}"


@socketio.on("connect", namespace=STANDINGS_NAMESPACE)
def on_connect():
    user_id = current_user.id if current_user.is_authenticated else None
    connected_clients[request.sid] = {"user_id": user_id, "subscriptions": set()}
    logger.info(f"Client connected to /standings: {request.sid} (user: {user_id})")


@socketio.on("disconnect", namespace=STANDINGS_NAMESPACE)
def on_disconnect():
    client = connected_clients.pop(request.sid, None)
    if client is not None:
        logger.info(
            f"Client disconnected from /standings: {request.sid} (user: {client['user_id']})"
        )


@socketio.on("subscribe_zone", namespace=STANDINGS_NAMESPACE)
def on_subscribe_zone(data):
    """Join a zone room and receive its current table"""
    zone_id = (data or {}).get("zone_id")
    client = connected_clients.get(request.sid)
    if client is None or zone_id is None:
        return

    room = zone_room(zone_id)
    if room in client["subscriptions"]:
        return

    try:
        payload = ranked_zone_table(LeagueRepository(), int(zone_id))
    except (LeagueError, TypeError, ValueError) as e:
        emit("standings_error", {"zone_id": zone_id, "error": str(e)})
        return

    client["subscriptions"].add(room)
    join_room(room)
    emit("standings_update", payload)
    logger.debug(f"Client {request.sid} subscribed to zone {zone_id}")


@socketio.on("unsubscribe_zone", namespace=STANDINGS_NAMESPACE)
def on_unsubscribe_zone(data):
    zone_id = (data or {}).get("zone_id")
    client = connected_clients.get(request.sid)
    if client is None or zone_id is None:
        return

    room = zone_room(zone_id)
    client["subscriptions"].discard(room)
    leave_room(room)
    logger.debug(f"Client {request.sid} unsubscribed from zone {zone_id}")


@socketio.on("connect", namespace=NOTIFICATIONS_NAMESPACE)
def on_notifications_connect():
    if not current_user.is_authenticated:
        disconnect()
        return

    join_room(user_room(current_user.id))
    logger.info(f"User {current_user.id} connected to notifications")


@socketio.on("disconnect", namespace=NOTIFICATIONS_NAMESPACE)
def on_notifications_disconnect():
    if current_user.is_authenticated:
        leave_room(user_room(current_user.id))
        logger.info(f"User {current_user.id} disconnected from notifications")


# Broadcast functions (called from routes, CLI and the scheduler)
def broadcast_standings(zone_id, payload):
    """Push a freshly ranked table to the zone's subscribers"""
    try:
        socketio.emit(
            "standings_update",
            payload,
            room=zone_room(zone_id),
            namespace=STANDINGS_NAMESPACE,
        )
        logger.debug(f"Broadcasted standings for zone {zone_id}")
    except Exception as e:
        logger.error(f"Error broadcasting standings for zone {zone_id}: {e}")


def notify_prediction_settled(predictions):
    """Tell each owner how their prediction settled"""
    notified = 0
    for prediction in predictions:
        try:
            socketio.emit(
                "prediction_settled",
                {
                    "prediction_id": prediction.id,
                    "match_id": prediction.match_id,
                    "is_correct": prediction.is_correct,
                    "points_awarded": prediction.points_awarded,
                    "payout_amount": prediction.payout_amount,
                    "currency": prediction.currency,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                },
                room=user_room(prediction.user_id),
                namespace=NOTIFICATIONS_NAMESPACE,
            )
            notified += 1
        except Exception as e:
            logger.error(f"Error notifying user {prediction.user_id}: {e}")
    logger.debug(f"Notified {notified} settled predictions")
    return notified


def get_connection_stats():
    return {
        "total_connections": len(connected_clients),
        "authenticated_users": len(
            [c for c in connected_clients.values() if c["user_id"]]
        ),
        "total_subscriptions": sum(
            len(c["subscriptions"]) for c in connected_clients.values()
        ),
    }
