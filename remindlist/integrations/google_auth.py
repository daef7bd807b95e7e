"""
RemindList — Google Sheets Authentication.

The bot is a headless service, so it authenticates with a service account
key file instead of an interactive OAuth consent flow. The spreadsheet must be
shared with the service account's e-mail address.
"""

from __future__ import annotations

import logging
from pathlib import Path

from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]


def get_sheets_service(service_account_file: str):
    """Build a Google Sheets API v4 service object from a key file.

    Raises:
        FileNotFoundError: if the key file does not exist.
    """
    key_path = Path(service_account_file)
    if not key_path.exists():
        raise FileNotFoundError(
            f"Google service account key not found at {key_path}. "
            "Create one in the Google Cloud Console and share the spreadsheet with it."
        )

    creds = Credentials.from_service_account_file(str(key_path), scopes=SCOPES)
    service = build("sheets", "v4", credentials=creds, cache_discovery=False)
    logger.info("Google Sheets service built for %s", creds.service_account_email)
    return service
