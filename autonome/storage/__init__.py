"""autonome storage.

The learning ledger: a local SQLite store, append-only apart from the
memory table's access counters.
"""

from .ledger import Ledger
from .payloads import decode_payload, encode_payload
from .schema import SCHEMA_VERSION, validate_table_name

__all__ = [
    "Ledger",
    "SCHEMA_VERSION",
    "decode_payload",
    "encode_payload",
    "validate_table_name",
]
