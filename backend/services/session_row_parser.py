"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  ERP SESSIONS - Parser des lignes d'import                                   ║
║                                                                              ║
║  Dates acceptées:                                                            ║
║  - datetime / texte ISO                                                      ║
║  - numéro de série tableur (jours depuis 1899-12-30, UTC)                    ║
║  - texte numérique (essayé comme numéro de série AVANT le reste)             ║
║  - texte libre jj/mm/aaaa [hh:mm[:ss]]                                       ║
║                                                                              ║
║  RÈGLE: ligne valide = num_sesion + inicio + fin parsés ET fin > inicio      ║
║  Sinon la ligne est ignorée (jamais d'erreur ligne par ligne)                ║
║                                                                              ║
║  Statut inconnu → BORRADOR (politique permissive assumée)                    ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
import math
import re
import unicodedata
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pytz

from config import IMPORT_TIMEZONE
from models import ImportRow, SessionState

logger = logging.getLogger("session_row_parser")

# Epoch des numéros de série tableur
SPREADSHEET_EPOCH = datetime(1899, 12, 30, tzinfo=timezone.utc)
MS_PER_DAY = 86_400_000
MAX_SERIAL = 2_958_465  # 9999-12-31

_NUMERIC_RE = re.compile(r"^[+-]?\d+(?:[.,]\d+)?$")

# Formats texte libre (tableurs espagnols / français)
_FREE_TEXT_FORMATS = [
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y",
    "%d-%m-%Y %H:%M:%S",
    "%d-%m-%Y %H:%M",
    "%d-%m-%Y",
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d",
]

# Colonnes attendues → alias (après normalize_header)
COLUMN_ALIASES = {
    "deal": ["deal_id_pipedrive", "deal", "presupuesto", "dealid", "deal_id"],
    "session_number": ["num_sesion", "sesion", "sessionnumber", "session_number", "numero_sesion"],
    "start": ["inicio", "start", "fecha_inicio"],
    "end": ["fin", "end", "fecha_fin"],
    "main_trainer_name": ["formador", "trainer", "main_trainer_name", "formador_principal"],
    "support_trainer_name": [
        "formador_sup", "formador_suplente", "trainer_sup", "trainersup", "support_trainer_name",
    ],
    "state": ["estado_de_la_sesion", "estado", "status", "state"],
}

# Libellés normalisés → statut
_STATE_LABELS = {
    "borrador": SessionState.BORRADOR,
    "draft": SessionState.BORRADOR,
    "planificada": SessionState.PLANIFICADA,
    "planificado": SessionState.PLANIFICADA,
    "planned": SessionState.PLANIFICADA,
    "suspendida": SessionState.SUSPENDIDA,
    "suspendido": SessionState.SUSPENDIDA,
    "suspended": SessionState.SUSPENDIDA,
    "cancelada": SessionState.CANCELADA,
    "cancelado": SessionState.CANCELADA,
    "cancelled": SessionState.CANCELADA,
    "canceled": SessionState.CANCELADA,
    "finalizada": SessionState.FINALIZADA,
    "finalizado": SessionState.FINALIZADA,
    "finished": SessionState.FINALIZADA,
}


def strip_accents(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_header(value: Any) -> str:
    """'Estado de la sesión' → 'estado_de_la_sesion'"""
    if not isinstance(value, str):
        return ""
    text = strip_accents(value)
    text = re.sub(r"[^a-zA-Z0-9]+", " ", text).strip().lower()
    return re.sub(r"\s+", "_", text)


# ==================== DATES ====================

def serial_to_datetime(serial: Any) -> Optional[datetime]:
    """Numéro de série tableur → datetime UTC (epoch_millis + serial * 86400000)"""
    try:
        serial = float(serial)
    except (OverflowError, ValueError):
        return None
    # NaN (cellule vide d'un export pandas) / inf
    if not math.isfinite(serial) or serial <= 0 or serial > MAX_SERIAL:
        return None
    return SPREADSHEET_EPOCH + timedelta(milliseconds=round(serial * MS_PER_DAY))


def _to_utc(dt: datetime, tz_name: str) -> datetime:
    if dt.tzinfo is None:
        dt = pytz.timezone(tz_name).localize(dt)
    return dt.astimezone(timezone.utc)


def parse_datetime(value: Any, tz_name: str = IMPORT_TIMEZONE) -> Optional[datetime]:
    """
    Convertit une valeur de cellule en datetime UTC.
    Retourne None si la valeur n'est pas une date exploitable.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        return _to_utc(value, tz_name)

    if isinstance(value, (int, float)):
        return serial_to_datetime(value)

    text = str(value).strip()
    if not text:
        return None

    # Texte numérique → numéro de série d'abord
    if _NUMERIC_RE.match(text):
        parsed = serial_to_datetime(text.replace(",", "."))
        if parsed is not None:
            return parsed

    try:
        return _to_utc(datetime.fromisoformat(text.replace("Z", "+00:00")), tz_name)
    except ValueError:
        pass

    for fmt in _FREE_TEXT_FORMATS:
        try:
            return _to_utc(datetime.strptime(text, fmt), tz_name)
        except ValueError:
            continue

    return None


# ==================== STATUT ====================

def parse_state(value: Any) -> SessionState:
    """Libellé libre → SessionState, BORRADOR par défaut"""
    if value is None:
        return SessionState.BORRADOR
    normalized = strip_accents(str(value)).strip().casefold()
    normalized = re.sub(r"\s+", " ", normalized)
    return _STATE_LABELS.get(normalized, SessionState.BORRADOR)


# ==================== LIGNES ====================

def _normalize_keys(raw: Dict[str, Any]) -> Dict[str, Any]:
    normalized = {}
    for key, value in raw.items():
        nk = normalize_header(key)
        if nk and nk not in normalized:
            normalized[nk] = value
    return normalized


def _cell(row: Dict[str, Any], field: str) -> Any:
    """Première valeur non vide parmi les alias de la colonne"""
    for alias in COLUMN_ALIASES[field]:
        value = row.get(alias)
        if value is None:
            continue
        if isinstance(value, float) and not math.isfinite(value):
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return re.sub(r"\s+", " ", str(value)).strip()


def parse_row(raw: Any, deal_key: str) -> Optional[ImportRow]:
    """
    Valide une ligne brute pour le deal `deal_key`.
    Retourne None si la ligne doit être ignorée.
    """
    if not isinstance(raw, dict):
        return None

    row = _normalize_keys(raw)

    row_deal = _text(_cell(row, "deal"))
    if row_deal and deal_key and row_deal != str(deal_key).strip():
        logger.debug(f"[PARSER] Ligne ignorée: deal {row_deal} != {deal_key}")
        return None

    session_number = _text(_cell(row, "session_number"))
    start = parse_datetime(_cell(row, "start"))
    end = parse_datetime(_cell(row, "end"))

    if not session_number or start is None or end is None:
        return None
    if end <= start:
        return None

    return ImportRow(
        session_number=session_number,
        start=start,
        end=end,
        main_trainer_name=_text(_cell(row, "main_trainer_name")),
        support_trainer_name=_text(_cell(row, "support_trainer_name")),
        state=parse_state(_cell(row, "state")),
    )


def parse_rows(raws: Iterable[Any], deal_key: str) -> Tuple[List[ImportRow], int]:
    """Retourne (lignes acceptées, nombre de lignes ignorées)"""
    accepted = []
    dropped = 0
    for raw in raws:
        parsed = parse_row(raw, deal_key)
        if parsed is None:
            dropped += 1
        else:
            accepted.append(parsed)

    if dropped:
        logger.info(f"[PARSER] deal={deal_key} acceptées={len(accepted)} ignorées={dropped}")
    return accepted, dropped


def _row_deal(raw: Any) -> str:
    if not isinstance(raw, dict):
        return ""
    return _text(_cell(_normalize_keys(raw), "deal"))


def group_rows_by_deal(raws: Iterable[Any]) -> Dict[str, List[Dict[str, Any]]]:
    """Découpe une feuille multi-deals en batches par deal (ordre conservé)"""
    groups: Dict[str, List[Dict[str, Any]]] = {}
    for raw in raws:
        deal = _row_deal(raw)
        if deal:
            groups.setdefault(deal, []).append(raw)
    return groups


def count_rows_without_deal(raws: Iterable[Any]) -> int:
    """Lignes ignorées par group_rows_by_deal (pas d'objet ou colonne deal vide)"""
    return sum(1 for raw in raws if not _row_deal(raw))
