import logging
from typing import Optional

import pycouchdb
import requests

from folio.settings import Settings, settings

logger = logging.getLogger(__name__)


def get_couch():
    return open_couch(settings)


def open_couch(current_settings: Optional[Settings] = None):
    """
    Open the posts database, creating it on first use.
    Called at runtime to avoid import-time connections. Returns None when the
    store is not configured or unreachable so callers can fail with a
    not-initialized error instead of a transport error.
    """
    current_settings = current_settings or settings
    if not current_settings.couchdb_configured:
        logger.warning(
            "CouchDB is not configured; set COUCHDB_HOST and COUCHDB_DATABASE"
        )
        return None

    try:
        couch = pycouchdb.Server(current_settings.couchdb_url)
        try:
            return couch.database(current_settings.COUCHDB_DATABASE)
        except pycouchdb.exceptions.NotFound:
            logger.info(f"Creating CouchDB database {current_settings.COUCHDB_DATABASE}")
            return couch.create(current_settings.COUCHDB_DATABASE)
    except (pycouchdb.exceptions.Error, requests.RequestException) as e:
        logger.error(f"Error initializing CouchDB: {e}")
        return None
