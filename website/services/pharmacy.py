"""Pharmacy settings endpoints: name, logo and contact details."""

import logging

from website.utils.envelopes import unwrap_record

logger = logging.getLogger(__name__)

SETTINGS_PATH = '/settings'


def get_settings(client):
    return unwrap_record(client.get(SETTINGS_PATH)) or {}


def update_settings(client, payload):
    response = client.patch(SETTINGS_PATH, json=payload)
    logger.info(f"Updated pharmacy settings: {sorted(payload)}")
    return unwrap_record(response) or {}


def upload_logo(client, image):
    response = client.upload(f"{SETTINGS_PATH}/logo", image, field_name='file')
    logger.info(f"Uploaded pharmacy logo {image.name}")
    return unwrap_record(response) or {}
