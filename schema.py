#!/usr/bin/env python3
"""
Elasticsearch Index Definitions
One index per logical table. String fields are keywords so that
table filters are exact matches.
"""

FAVORITES_TABLE = "favorite_processes"
SNAPSHOTS_TABLE = "process_snapshots"
NOTIFICATIONS_TABLE = "notifications"
PROCESSES_TABLE = "processes"
CONSULTATIONS_TABLE = "consultation_history"

INDEX_MAPPINGS = {
    FAVORITES_TABLE: {
        "properties": {
            "user_id": {"type": "keyword"},
            "numero_radicacion": {"type": "keyword"},
            "despacho": {"type": "keyword"},
            "demandante": {"type": "keyword"},
            "demandado": {"type": "keyword"},
            "tipo_proceso": {"type": "keyword"},
            "fecha_radicacion": {"type": "keyword"},
            "created_at": {"type": "date"}
        }
    },
    SNAPSHOTS_TABLE: {
        "properties": {
            "process_number": {"type": "keyword"},
            "process_id": {"type": "keyword"},
            "last_activity_date": {"type": "keyword"},
            "last_decision_date": {"type": "keyword"},
            "last_status": {"type": "keyword"},
            # Compared verbatim, never searched or aggregated
            "summary": {"type": "text", "index": False}
        }
    },
    NOTIFICATIONS_TABLE: {
        "properties": {
            "user_id": {"type": "keyword"},
            "process_id": {"type": "keyword"},
            "title": {"type": "text"},
            "message": {"type": "text"},
            "is_read": {"type": "boolean"},
            "type": {"type": "keyword"},
            "created_at": {"type": "date"},
            "sent_at": {"type": "date"},
            "read_at": {"type": "date"}
        }
    },
    PROCESSES_TABLE: {
        "properties": {
            "id_proceso": {"type": "long"},
            "id_conexion": {"type": "long"},
            "numero_radicacion": {"type": "keyword"},
            "fecha_radicacion": {"type": "keyword"},
            "fecha_proceso": {"type": "keyword"},
            "fecha_ultima_actuacion": {"type": "keyword"},
            "despacho": {"type": "keyword"},
            "departamento": {"type": "keyword"},
            "tipo_proceso": {"type": "keyword"},
            "demandante": {"type": "keyword"},
            "demandado": {"type": "keyword"},
            "sujetos_procesales": {"type": "text"},
            "cantidad_folios": {"type": "integer"},
            "es_privado": {"type": "boolean"},
            "estado": {"type": "keyword"},
            "portal_url": {"type": "keyword", "index": False},
            # Stored with the case, returned as-is
            "actuaciones": {"type": "object", "enabled": False},
            "sujetos": {"type": "object", "enabled": False},
            "documentos": {"type": "object", "enabled": False},
            "updated_at": {"type": "date"}
        }
    },
    CONSULTATIONS_TABLE: {
        "properties": {
            "user_id": {"type": "keyword"},
            "numero_radicacion": {"type": "keyword"},
            "consultation_type": {"type": "keyword"},
            "result_status": {"type": "keyword"},
            "error_message": {"type": "text"},
            "ip_address": {"type": "keyword"},
            "user_agent": {"type": "text"},
            "created_at": {"type": "date"}
        }
    }
}
