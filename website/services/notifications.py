"""Notification endpoints."""

from website.utils.envelopes import unwrap_collection, unwrap_data


def list_notifications(client, page=1, limit=10, is_read=None, type=None):
    params = {'page': page, 'limit': limit, 'type': type}
    if is_read is not None:
        params['isRead'] = 'true' if is_read else 'false'
    return unwrap_collection(client.get('/notifications', params=params), 'notifications')


def unread_count(client):
    data = unwrap_data(client.get('/notifications/unread-count'))
    if isinstance(data, dict):
        data = data.get('count', data.get('unreadCount', 0))
    try:
        return int(data or 0)
    except (TypeError, ValueError):
        return 0


def mark_read(client, pk):
    return unwrap_data(client.patch(f"/notifications/{pk}/read"))


def mark_all_read(client):
    return unwrap_data(client.patch('/notifications/mark-all-read'))
