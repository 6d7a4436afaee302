#!/usr/bin/env python3
"""
Elasticsearch client operations

Elasticsearch backs the generic table access used by the monitor:
each logical table lives in its own index (see schema.py).
"""

from elasticsearch import Elasticsearch, NotFoundError
from typing import Any, Dict, List, Optional, Sequence, Union
import time
import logging

from config import ES_HOST, ES_INDEX_PREFIX, ES_REQUEST_TIMEOUT, MAX_RETRIES, RETRY_DELAY
from schema import INDEX_MAPPINGS

logger = logging.getLogger(__name__)

SCROLL_TTL = "2m"
PAGE_SIZE = 100

# Painless script shared by update(): copy every entry of params.changes into the document
MERGE_CHANGES_SCRIPT = """
    for (entry in params.changes.entrySet()) {
        ctx._source[entry.getKey()] = entry.getValue();
    }
"""


class PersistenceError(Exception):
    """Raised when a table operation cannot be completed"""


def index_name(table: str) -> str:
    return f"{ES_INDEX_PREFIX}{table}"


def create_client() -> Elasticsearch:
    """Build a client without touching the network"""
    return Elasticsearch(ES_HOST, request_timeout=ES_REQUEST_TIMEOUT)


def connect_to_elasticsearch(retry: bool = True) -> Optional[Elasticsearch]:
    """Connect to Elasticsearch with retry logic"""
    retries = 0
    delay = RETRY_DELAY

    while True:
        try:
            es = create_client()
            if not es.ping():
                raise Exception("Failed to ping Elasticsearch")

            logger.info("✅ Connected to Elasticsearch successfully")
            return es

        except Exception as e:
            retries += 1
            if not retry or retries >= MAX_RETRIES:
                logger.error(f"❌ Error connecting to Elasticsearch after {retries} attempts: {e}")
                return None

            logger.warning(f"⚠️ Failed to connect to Elasticsearch (attempt {retries}/{MAX_RETRIES}): {e}")
            logger.info(f"🔄 Retrying in {delay} seconds...")
            time.sleep(delay)
            delay *= 2  # Exponential backoff


def apply_index_mappings(es: Elasticsearch, retry: bool = True) -> bool:
    """Create every missing table index with its mapping, with retry logic"""
    retries = 0
    delay = RETRY_DELAY

    while True:
        try:
            for table, mappings in INDEX_MAPPINGS.items():
                name = index_name(table)
                if es.indices.exists(index=name):
                    continue
                es.indices.create(index=name, mappings=mappings)
                logger.info(f"✅ Created index '{name}'")
            return True

        except Exception as e:
            retries += 1
            if not retry or retries >= MAX_RETRIES:
                logger.error(f"❌ Error applying index mappings after {retries} attempts: {e}")
                return False

            logger.warning(f"⚠️ Failed to apply index mappings (attempt {retries}/{MAX_RETRIES}): {e}")
            logger.info(f"🔄 Retrying in {delay} seconds...")
            time.sleep(delay)
            delay *= 2  # Exponential backoff


def build_filter_query(filters: Optional[Dict[str, Any]]) -> Dict:
    """
    Translate equality filters into an Elasticsearch bool query

    Args:
        filters: field -> value. The special field "id" matches the document id,
                 a None value matches documents where the field is missing or null.
    """
    if not filters:
        return {"match_all": {}}

    must = []
    must_not = []
    for field, value in filters.items():
        if field == "id":
            must.append({"ids": {"values": [str(value)]}})
        elif value is None:
            must_not.append({"exists": {"field": field}})
        else:
            must.append({"term": {field: value}})

    query = {"bool": {"filter": must}}
    if must_not:
        query["bool"]["must_not"] = must_not
    return query


def _hit_to_record(hit: Dict) -> Dict:
    record = dict(hit.get("_source", {}))
    record["id"] = hit["_id"]
    return record


class TableStore:
    """
    Generic table access over Elasticsearch

    Every method raises PersistenceError on failure; a missing index reads as an empty table.
    """

    def __init__(self, es: Elasticsearch):
        self.es = es

    def select(self, table: str, filters: Optional[Dict[str, Any]] = None,
               sort: Optional[List[Dict]] = None, size: Optional[int] = None,
               offset: int = 0) -> List[Dict]:
        """Return matching records; without a size, scroll through all of them"""
        name = index_name(table)
        query = build_filter_query(filters)
        try:
            if size is not None:
                response = self.es.search(index=name, query=query, sort=sort, size=size, from_=offset)
                return [_hit_to_record(hit) for hit in response["hits"]["hits"]]

            response = self.es.search(index=name, query=query, sort=sort, size=PAGE_SIZE, scroll=SCROLL_TTL)
            scroll_id = response["_scroll_id"]
            hits = list(response["hits"]["hits"])

            # Continue scrolling if there are more documents
            while len(response["hits"]["hits"]) > 0:
                response = self.es.scroll(scroll_id=scroll_id, scroll=SCROLL_TTL)
                if len(response["hits"]["hits"]) == 0:
                    break
                hits.extend(response["hits"]["hits"])

            self.es.clear_scroll(scroll_id=scroll_id)
            return [_hit_to_record(hit) for hit in hits]
        except NotFoundError:
            logger.debug(f"Index '{name}' not found, treating as empty")
            return []
        except Exception as e:
            raise PersistenceError(f"select on '{table}' failed: {e}") from e

    def insert(self, table: str, record: Dict) -> Dict:
        """Append a record; the store assigns its id"""
        try:
            response = self.es.index(index=index_name(table), document=record, refresh="wait_for")
        except Exception as e:
            raise PersistenceError(f"insert into '{table}' failed: {e}") from e
        return {**record, "id": response["_id"]}

    def upsert(self, table: str, record: Dict, conflict_key: Union[str, Sequence[str]]) -> Dict:
        """
        Replace the record identified by conflict_key entirely (no merge)

        Args:
            conflict_key: one field name, or several joined with ':' into the document id
        """
        keys = [conflict_key] if isinstance(conflict_key, str) else list(conflict_key)
        missing = [key for key in keys if not record.get(key)]
        if missing:
            raise PersistenceError(f"upsert into '{table}' is missing key field(s): {missing}")

        doc_id = ":".join(str(record[key]) for key in keys)
        try:
            self.es.index(index=index_name(table), id=doc_id, document=record, refresh="wait_for")
        except Exception as e:
            raise PersistenceError(f"upsert into '{table}' failed: {e}") from e
        return {**record, "id": doc_id}

    def update(self, table: str, filters: Dict[str, Any], changes: Dict[str, Any]) -> int:
        """Set the given fields on every matching record, returns how many were updated"""
        try:
            response = self.es.update_by_query(
                index=index_name(table),
                query=build_filter_query(filters),
                script={"source": MERGE_CHANGES_SCRIPT, "params": {"changes": changes}},
                refresh=True,
                conflicts="proceed"
            )
        except NotFoundError:
            return 0
        except Exception as e:
            raise PersistenceError(f"update on '{table}' failed: {e}") from e
        return int(response.get("updated", 0))

    def delete(self, table: str, filters: Dict[str, Any]) -> int:
        """Delete every matching record, returns how many were deleted"""
        try:
            response = self.es.delete_by_query(
                index=index_name(table),
                query=build_filter_query(filters),
                refresh=True,
                conflicts="proceed"
            )
        except NotFoundError:
            return 0
        except Exception as e:
            raise PersistenceError(f"delete on '{table}' failed: {e}") from e
        return int(response.get("deleted", 0))

    def count(self, table: str, filters: Optional[Dict[str, Any]] = None) -> int:
        try:
            return int(self.es.count(index=index_name(table), query=build_filter_query(filters))["count"])
        except NotFoundError:
            return 0
        except Exception as e:
            raise PersistenceError(f"count on '{table}' failed: {e}") from e


_store: Optional[TableStore] = None
_indices_ready = False


def get_table_store() -> TableStore:
    """Shared table store for the configured cluster"""
    global _store
    if _store is None:
        _store = TableStore(create_client())
    return _store


def ensure_indices() -> bool:
    """Create the table indices once; later calls are no-ops after the first success"""
    global _indices_ready
    if not _indices_ready:
        _indices_ready = apply_index_mappings(get_table_store().es, retry=False)
    return _indices_ready


def get_table_stats(store: TableStore) -> Dict:
    """Get record counts for every table"""
    try:
        return {table: store.count(table) for table in INDEX_MAPPINGS}
    except Exception as e:
        logger.error(f"Error getting Elasticsearch stats: {e}")
        stats = {table: 0 for table in INDEX_MAPPINGS}
        stats["error"] = str(e)
        return stats
