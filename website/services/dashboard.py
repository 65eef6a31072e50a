"""Dashboard summary endpoints."""

import logging

from website.utils.envelopes import unwrap_collection, unwrap_data, unwrap_record

logger = logging.getLogger(__name__)

STAT_CARDS = [
    ('totalRevenue', 'Total Revenue'),
    ('totalSales', 'Total Sales'),
    ('totalPurchases', 'Total Purchases'),
    ('lowStockItems', 'Low Stock Items'),
    ('pendingCredits', 'Pending Credits'),
    ('expiredBatches', 'Expired Batches'),
]

CHARTS = ('sales', 'revenue', 'purchases')
TIME_RANGES = ('7d', '30d', '90d')
DEFAULT_TIME_RANGE = '90d'


def get_stats(client):
    return unwrap_record(client.get('/dashboard/stats')) or {}


def get_chart(client, chart, time_range=None):
    if chart not in CHARTS:
        raise ValueError(f"Unknown chart: {chart}")
    params = {'timeRange': time_range} if time_range in TIME_RANGES else None
    data = unwrap_data(client.get(f"/dashboard/charts/{chart}", params=params))
    if isinstance(data, list):
        return {'chartData': data, 'config': {}}
    return data if isinstance(data, dict) else {'chartData': [], 'config': {}}


def get_table_data(client, page=1, limit=10, sort_by=None, sort_order=None):
    params = {'page': page, 'limit': limit, 'sortBy': sort_by, 'sortOrder': sort_order}
    return unwrap_collection(client.get('/dashboard/table-data', params=params))


def stat_cards(stats):
    """Stats payload as an ordered list of cards; optional cards are skipped when absent."""
    cards = []
    for key, label in STAT_CARDS:
        card = stats.get(key)
        if not isinstance(card, dict):
            continue
        cards.append({
            'key': key,
            'label': label,
            'value': card.get('value', 0),
            'trend': card.get('trend', 0),
            'trend_direction': card.get('trendDirection', 'up'),
            'footer_text': card.get('footerText', ''),
            'footer_subtext': card.get('footerSubtext', ''),
        })
    return cards


def chart_rows(chart):
    """Flatten a chart response into (series labels, rows) for tabular rendering."""
    config = chart.get('config') or {}
    points = chart.get('chartData') or []
    keys = list(config.keys())
    if not keys:
        seen = []
        for point in points:
            for key in point:
                if key != 'date' and key not in seen:
                    seen.append(key)
        keys = seen
    labels = [(key, (config.get(key) or {}).get('label', key.title())) for key in keys]
    rows = [{'date': point.get('date'), 'values': [point.get(key, 0) for key in keys]} for point in points]
    return labels, rows


def load_summary(client, time_range=DEFAULT_TIME_RANGE):
    """
    Stats plus the three charts, loaded as one unit.

    Any failing request fails the whole summary; the ApiError propagates
    to the caller once.
    """
    stats = get_stats(client)
    charts = {chart: get_chart(client, chart, time_range) for chart in CHARTS}
    logger.debug(f"Dashboard summary loaded ({time_range})")
    return {
        'stats': stats,
        'cards': stat_cards(stats),
        'charts': {name: chart_rows(chart) for name, chart in charts.items()},
    }
