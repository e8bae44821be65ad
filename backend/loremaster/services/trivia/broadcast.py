from loremaster import socketio


EVENT_NAME = 'trivia_event'
NAMESPACE = '/ws'


def channel_room(channel_id) -> str:
    return f"channel:{channel_id}"


class SocketIOBroadcastChannel:
    """Publishes trivia events to every socket joined to a broadcaster's room.

    Delivery is fire-and-forget; ``publish`` only reports whether the emit
    itself went through.
    """

    def __init__(self, app, sio=None):
        self.app = app
        self.sio = sio or socketio

    def publish(self, channel_id, event) -> bool:
        payload = event.to_payload()
        try:
            self.sio.emit(EVENT_NAME, payload, to=channel_room(channel_id), namespace=NAMESPACE)
        except Exception as exc:
            self.app.logger.error(f"[broadcast-fail] channel={channel_id} type={payload.get('type')} error={exc}")
            return False
        return True
