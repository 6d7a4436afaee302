#!/usr/bin/env python3
"""
Data models and type definitions
"""

from typing import Dict, List, Optional
from datetime import datetime, timezone

from pydantic import BaseModel, Field

# === Global State ===
monitor_state = {
    "is_running": False,
    "last_check": None,
    "last_cycle_finished": None,
    "total_cycles": 0,
    "last_changes_detected": 0,
    "errors": []
}

NOTIFICATION_TYPE_IN_APP = "in_app"


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string"""
    return datetime.now(timezone.utc).isoformat()


class FavoriteEntry(BaseModel):
    """A user's subscription to updates for one case number"""
    user_id: str
    numero_radicacion: Optional[str] = None
    despacho: Optional[str] = None
    demandante: Optional[str] = None
    demandado: Optional[str] = None
    tipo_proceso: Optional[str] = None
    fecha_radicacion: Optional[str] = None
    created_at: Optional[str] = None

    @property
    def document_id(self) -> str:
        return f"{self.user_id}:{self.numero_radicacion}"


class FavoriteRequest(BaseModel):
    """Body of the add-favorite endpoint"""
    numero_radicacion: Optional[str] = None
    despacho: Optional[str] = None
    demandante: Optional[str] = None
    demandado: Optional[str] = None
    tipo_proceso: Optional[str] = None
    fecha_radicacion: Optional[str] = None


class CaseActivity(BaseModel):
    id_actuacion: Optional[int] = None
    cons_actuacion: Optional[int] = None
    fecha_actuacion: Optional[str] = None
    actuacion: Optional[str] = None
    anotacion: Optional[str] = None
    fecha_inicio_termino: Optional[str] = None
    fecha_finaliza_termino: Optional[str] = None
    codigo_regla: Optional[str] = None
    con_documentos: bool = False
    cant_folios: int = 0


class CaseSubject(BaseModel):
    id_sujeto_proceso: Optional[int] = None
    nombre_sujeto: Optional[str] = None
    tipo_sujeto: Optional[str] = None
    identificacion: Optional[str] = None
    tipo_identificacion: Optional[str] = None
    apoderado: Optional[str] = None
    tiene_apoderado: bool = False


class CaseDocument(BaseModel):
    id_documento: Optional[int] = None
    nombre_archivo: Optional[str] = None
    tipo_documento: Optional[str] = None
    url_descarga: Optional[str] = None
    tamano_archivo: Optional[int] = None
    extension_archivo: Optional[str] = None
    fecha_documento: Optional[str] = None


class CaseData(BaseModel):
    """
    Full case record as returned by the judicial portal.
    Rebuilt on every fetch, never persisted by the monitor.
    """
    id_proceso: Optional[int] = None
    id_conexion: Optional[int] = None
    numero_radicacion: Optional[str] = None
    fecha_radicacion: Optional[str] = None
    fecha_proceso: Optional[str] = None
    fecha_ultima_actuacion: Optional[str] = None
    despacho: Optional[str] = None
    departamento: Optional[str] = None
    tipo_proceso: Optional[str] = None
    demandante: Optional[str] = None
    demandado: Optional[str] = None
    sujetos_procesales: Optional[str] = None
    cantidad_folios: int = 0
    es_privado: bool = False
    estado: Optional[str] = None
    portal_url: Optional[str] = None
    actuaciones: List[CaseActivity] = Field(default_factory=list)
    sujetos: List[CaseSubject] = Field(default_factory=list)
    documentos: List[CaseDocument] = Field(default_factory=list)

    @property
    def latest_activity(self) -> Optional[CaseActivity]:
        # The portal lists activities most recent first
        return self.actuaciones[0] if self.actuaciones else None


class ProcessSnapshot(BaseModel):
    """Last observed state of a case, keyed by case number"""
    process_number: str
    process_id: Optional[str] = None
    last_activity_date: Optional[str] = None
    last_decision_date: Optional[str] = None
    last_status: Optional[str] = None
    summary: Optional[str] = None


class NotificationRecord(BaseModel):
    id: Optional[str] = None
    user_id: str
    process_id: Optional[str] = None
    title: str
    message: str
    is_read: bool = False
    type: str = NOTIFICATION_TYPE_IN_APP
    created_at: Optional[str] = None
    sent_at: Optional[str] = None
    read_at: Optional[str] = None

    def to_record(self) -> Dict:
        """Document body for the notifications table (the store assigns the id)"""
        return self.model_dump(exclude={"id"})


class ConsultationRecord(BaseModel):
    """One portal consultation, successful or not"""
    id: Optional[str] = None
    user_id: Optional[str] = None
    numero_radicacion: str
    consultation_type: str = "user_consult"
    result_status: str
    error_message: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: Optional[str] = None

    def to_record(self) -> Dict:
        return self.model_dump(exclude={"id"})
