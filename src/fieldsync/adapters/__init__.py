"""Source adapters: one per external source ecosystem."""

from fieldsync.adapters.airtable import AirtableAdapter
from fieldsync.adapters.base import SourceAdapter
from fieldsync.adapters.google_sheets import GoogleSheetsAdapter
from fieldsync.adapters.notion import NotionAdapter

__all__ = ["AirtableAdapter", "GoogleSheetsAdapter", "NotionAdapter", "SourceAdapter"]
