"""Broadcaster panel commands relayed over the push channel.

The panel sends ``{'type': ..., ...}`` messages; each one is dispatched to
the round controller or a store. Lookups are answered with a
``*_RESPONSE`` event published to the broadcaster's room, and every
command returns a small ack for the sender.
"""

from typing import Any, Callable, Dict

from loremaster.exceptions import LogicConflict, ValidationError
from .events import CommandResponse
from .settings import normalize_filters


def _categories(controller, channel_id, message):
    categories = controller.selector.store.categories()
    controller.publish(channel_id, CommandResponse('CATEGORIES_RESPONSE', {'categories': categories}))
    return {'success': True}


def _difficulties(controller, channel_id, message):
    difficulties = controller.selector.store.difficulties()
    controller.publish(channel_id, CommandResponse('DIFFICULTIES_RESPONSE', {'difficulties': difficulties}))
    return {'success': True}


def _broadcaster_settings(controller, channel_id, message):
    broadcaster_id = message.get('broadcasterId') or channel_id
    settings = controller.settings_store.get(broadcaster_id)
    controller.publish(channel_id, CommandResponse('BROADCASTER_SETTINGS_RESPONSE', {
        'broadcasterId': broadcaster_id,
        'settings': settings.to_dict(),
    }))
    return {'success': True}


def _question_stats(controller, channel_id, message):
    # Validated like saved filters, but nothing is stored
    preview = normalize_filters({
        'activeCategories': message.get('categories'),
        'activeDifficulties': message.get('difficulties'),
    }, controller.settings_store.get(channel_id))
    filters = preview.filters
    count = controller.selector.store.count(filters['categories'], filters['difficulties'])
    controller.publish(channel_id, CommandResponse('QUESTION_STATS_RESPONSE', {
        'totalMatching': count,
        'filters': filters,
    }))
    return {'success': True, 'totalMatching': count}


def _save_filters(controller, channel_id, message):
    broadcaster_id = message.get('broadcasterId') or channel_id
    settings = normalize_filters(message, controller.settings_store.get(broadcaster_id))
    controller.settings_store.put(broadcaster_id, settings)
    filters = settings.filters
    count = controller.selector.store.count(filters['categories'], filters['difficulties'])
    controller.publish(channel_id, CommandResponse('FILTERS_SAVED', {
        'settings': settings.to_dict(),
        'questionCount': count,
        'message': f'Settings updated. {count} questions match your filters.',
    }))
    return {'success': True, 'questionCount': count}


def _update_settings(controller, channel_id, message):
    settings = controller.update_timing(channel_id, message)
    return {'success': True, 'settings': settings.to_dict()}


def _start(controller, channel_id, message):
    result = controller.start(channel_id)
    if result.conflict:
        raise LogicConflict(result.message)
    return {'success': result.success, 'message': result.message}


def _end(controller, channel_id, message):
    result = controller.end(channel_id)
    return {'success': result.success, 'message': result.message}


COMMANDS: Dict[str, Callable[..., Dict[str, Any]]] = {
    'GET_CATEGORIES': _categories,
    'GET_DIFFICULTIES': _difficulties,
    'GET_BROADCASTER_SETTINGS': _broadcaster_settings,
    'GET_QUESTION_STATS': _question_stats,
    'SAVE_FILTERS': _save_filters,
    'UPDATE_SETTINGS': _update_settings,
    'START_TRIVIA': _start,
    'END_TRIVIA': _end,
}


def dispatch(controller, channel_id, message) -> Dict[str, Any]:
    if not channel_id:
        raise ValidationError('channel_id is required')
    if not isinstance(message, dict) or not message.get('type'):
        raise ValidationError('message.type is required')
    handler = COMMANDS.get(message['type'])
    if handler is None:
        raise ValidationError(f"Unknown message type: {message['type']}")
    controller.logger.info(f"[command] channel={channel_id} type={message['type']}")
    return handler(controller, str(channel_id), message)
