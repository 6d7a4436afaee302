#!/usr/bin/env python3
"""
Judicial portal client
Fetches case data from the Rama Judicial "Consulta de Procesos" REST API
and maps the raw JSON into CaseData
"""

import re
import time
import logging
from typing import Any, Dict, List, Optional

import requests

from config import PORTAL_BASE_URL, PORTAL_API_URL, PORTAL_TIMEOUT, PORTAL_MAX_RETRIES, PORTAL_RETRY_DELAY
from models import CaseActivity, CaseData, CaseDocument, CaseSubject

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "NO DISPONIBLE"
DEFAULT_OFFICE = "DESPACHO NO DISPONIBLE"
DEFAULT_CASE_TYPE = "TIPO NO DISPONIBLE"
DEFAULT_STATUS = "Activo"

REQUEST_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; JudicialProcessMonitor/1.0)",
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "es-ES,es;q=0.9"
}

PLAINTIFF_PATTERN = re.compile(r"Demandante:\s*([^|]+)", re.IGNORECASE)
DEFENDANT_PATTERN = re.compile(r"Demandado:\s*([^|]+)", re.IGNORECASE)


class PortalError(Exception):
    """Raised when the portal cannot be reached or answers with an error"""


def portal_url(numero_radicacion: str) -> str:
    return f"{PORTAL_BASE_URL}/Procesos/NumeroRadicacion?numeroRadicacion={numero_radicacion}"


def _request_json(method: str, url: str, **kwargs) -> Any:
    """Perform a portal request with retry logic and return the decoded JSON body"""
    retries = 0
    delay = PORTAL_RETRY_DELAY

    while True:
        try:
            response = requests.request(method, url, headers=REQUEST_HEADERS, timeout=PORTAL_TIMEOUT, **kwargs)
            if response.status_code != 200:
                raise PortalError(f"Portal returned status {response.status_code}: {response.text[:200]}")
            return response.json()

        except (requests.RequestException, ValueError, PortalError) as e:
            retries += 1
            if retries > PORTAL_MAX_RETRIES:
                raise PortalError(f"{method} {url} failed after {retries} attempts: {e}") from e

            logger.warning(f"⚠️ Portal request failed (attempt {retries}/{PORTAL_MAX_RETRIES + 1}): {e}")
            time.sleep(delay)
            delay *= 2  # Exponential backoff


# === Mapping ===

def _to_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _to_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def extract_parties(sujetos_procesales: Optional[str]) -> Dict[str, str]:
    """
    Extract plaintiff and defendant from the portal's subjects string

    Example: "Demandante: ACME S.A.S | Demandado: JUAN PEREZ"
    """
    parties = {"demandante": NOT_AVAILABLE, "demandado": NOT_AVAILABLE}
    if not sujetos_procesales:
        return parties

    plaintiff = PLAINTIFF_PATTERN.search(sujetos_procesales)
    if plaintiff:
        parties["demandante"] = plaintiff.group(1).strip()

    defendant = DEFENDANT_PATTERN.search(sujetos_procesales)
    if defendant:
        parties["demandado"] = defendant.group(1).strip()

    return parties


def activity_from_portal(node: Dict[str, Any]) -> CaseActivity:
    return CaseActivity(
        id_actuacion=_to_int(node.get("idActuacion")),
        cons_actuacion=_to_int(node.get("consActuacion")),
        fecha_actuacion=_to_str(node.get("fechaActuacion")),
        actuacion=_to_str(node.get("actuacion")),
        anotacion=_to_str(node.get("anotacion")),
        fecha_inicio_termino=_to_str(node.get("fechaInicioTermino")),
        fecha_finaliza_termino=_to_str(node.get("fechaFinalizaTermino")),
        codigo_regla=_to_str(node.get("codigoRegla")),
        con_documentos=bool(node.get("conDocumentos")),
        cant_folios=_to_int(node.get("cantFolios")) or 0
    )


def subject_from_portal(node: Dict[str, Any]) -> CaseSubject:
    return CaseSubject(
        id_sujeto_proceso=_to_int(node.get("lnIdSujetoProceso")),
        nombre_sujeto=_to_str(node.get("lsNombreSujeto")),
        tipo_sujeto=_to_str(node.get("lsTipoSujeto")),
        identificacion=_to_str(node.get("lsIdentificacion")),
        tipo_identificacion=_to_str(node.get("lsTipoIdentificacion")),
        apoderado=_to_str(node.get("lsApoderado")),
        tiene_apoderado=node.get("lbTieneApoderado") == "S"
    )


def document_from_portal(node: Dict[str, Any]) -> CaseDocument:
    return CaseDocument(
        id_documento=_to_int(node.get("lnIdDocumento")),
        nombre_archivo=_to_str(node.get("lsNombreArchivo")),
        tipo_documento=_to_str(node.get("lsTipoDocumento")),
        url_descarga=_to_str(node.get("lsUrlDescarga")),
        tamano_archivo=_to_int(node.get("lnTamanoArchivo")),
        extension_archivo=_to_str(node.get("lsExtensionArchivo")),
        fecha_documento=_to_str(node.get("ldFechaDocumento"))
    )


def case_data_from_portal(proceso: Dict[str, Any], numero_radicacion: str,
                          actuaciones: Optional[List[Dict]] = None,
                          sujetos: Optional[List[Dict]] = None,
                          documentos: Optional[List[Dict]] = None) -> CaseData:
    """
    Map one entry of the portal's "procesos" list, plus the raw activity,
    subject and document lists, into CaseData

    Args:
        proceso: Raw process node from the NumeroRadicacion consultation
        numero_radicacion: Case number that was consulted, used when the node has none
    """
    fecha_proceso = _to_str(proceso.get("fechaProceso"))
    sujetos_procesales = _to_str(proceso.get("sujetosProcesales"))
    parties = extract_parties(sujetos_procesales)

    return CaseData(
        id_proceso=_to_int(proceso.get("idProceso")),
        id_conexion=_to_int(proceso.get("idConexion")),
        numero_radicacion=_to_str(proceso.get("llaveProceso")) or numero_radicacion,
        fecha_radicacion=fecha_proceso.split("T")[0] if fecha_proceso else None,
        fecha_proceso=fecha_proceso,
        fecha_ultima_actuacion=_to_str(proceso.get("fechaUltimaActuacion")),
        despacho=_to_str(proceso.get("despacho")) or DEFAULT_OFFICE,
        departamento=_to_str(proceso.get("departamento")),
        tipo_proceso=_to_str(proceso.get("tipoProceso")) or DEFAULT_CASE_TYPE,
        demandante=parties["demandante"],
        demandado=parties["demandado"],
        sujetos_procesales=sujetos_procesales,
        cantidad_folios=_to_int(proceso.get("cantFilas")) or 0,
        es_privado=bool(proceso.get("esPrivado")),
        estado=_to_str(proceso.get("estado")) or DEFAULT_STATUS,
        portal_url=portal_url(numero_radicacion),
        actuaciones=[activity_from_portal(node) for node in actuaciones or []],
        sujetos=[subject_from_portal(node) for node in sujetos or []],
        documentos=[document_from_portal(node) for node in documentos or []]
    )


# === Portal calls ===

def fetch_process_basic_info(numero_radicacion: str, active_only: bool = False) -> Optional[Dict]:
    """Return the first raw process node for the case number, None when the portal has none"""
    result = _request_json(
        "GET",
        f"{PORTAL_API_URL}/v2/Procesos/Consulta/NumeroRadicacion",
        params={"numero": numero_radicacion, "SoloActivos": str(bool(active_only)).lower(), "pagina": 1}
    )
    procesos = result.get("procesos") if isinstance(result, dict) else None
    if not procesos:
        return None
    return procesos[0]


def fetch_activities(numero_radicacion: str) -> List[Dict]:
    """Raw activity list, most recent first; empty when unavailable"""
    try:
        result = _request_json(
            "GET",
            f"{PORTAL_API_URL}/v2/Proceso/Actuaciones",
            params={"numero": numero_radicacion, "pagina": 1}
        )
    except PortalError as e:
        logger.error(f"Error getting activities for {numero_radicacion}: {e}")
        return []

    actuaciones = result.get("actuaciones") if isinstance(result, dict) else None
    return actuaciones if isinstance(actuaciones, list) else []


def _ls_data(result: Any) -> List[Dict]:
    if isinstance(result, dict) and result.get("isSuccess") and isinstance(result.get("lsData"), list):
        return result["lsData"]
    return []


def fetch_subjects(numero_radicacion: str) -> List[Dict]:
    """Raw subject-party list; empty when unavailable"""
    try:
        result = _request_json(
            "POST",
            f"{PORTAL_API_URL}/v1/Process/GetSujetosProcesales",
            json={"lsNroRadicacion": numero_radicacion}
        )
    except PortalError as e:
        logger.error(f"Error getting subjects for {numero_radicacion}: {e}")
        return []
    return _ls_data(result)


def fetch_documents(numero_radicacion: str, actuaciones: List[Dict]) -> List[Dict]:
    """Raw documents of every activity flagged with documents"""
    documents = []
    for activity in actuaciones:
        id_actuacion = _to_int(activity.get("idActuacion"))
        if not activity.get("conDocumentos") or id_actuacion is None:
            continue
        try:
            result = _request_json(
                "POST",
                f"{PORTAL_API_URL}/Process/GetDocumentos",
                json={"lsNroRadicacion": numero_radicacion, "lnIdActuacion": id_actuacion}
            )
        except PortalError as e:
            logger.error(f"Error getting documents for activity {id_actuacion}: {e}")
            continue
        documents.extend(_ls_data(result))
    return documents


def fetch_case(numero_radicacion: str, active_only: bool = False) -> Optional[CaseData]:
    """
    Fetch the full current record of a case

    Returns:
        CaseData, or None when the case is unknown or the portal is unavailable
    """
    numero = (numero_radicacion or "").strip()
    if not numero:
        return None

    logger.info(f"Consulting portal for process {numero} (active_only={active_only})")
    try:
        proceso = fetch_process_basic_info(numero, active_only)
    except PortalError as e:
        logger.error(f"❌ Error getting basic info for {numero}: {e}")
        return None

    if proceso is None:
        logger.warning(f"No basic info found for process: {numero}")
        return None

    actuaciones = fetch_activities(numero)
    sujetos = fetch_subjects(numero)
    documentos = fetch_documents(numero, actuaciones)

    case = case_data_from_portal(proceso, numero, actuaciones, sujetos, documentos)
    logger.info(f"✅ Retrieved process {numero}: {len(case.actuaciones)} activities, "
                f"{len(case.sujetos)} subjects, {len(case.documentos)} documents")
    return case
