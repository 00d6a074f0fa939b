"""
Cobros (charges to clubs) and their Pagos.

A Cobro is Pagado iff at least one of its Pagos is Pagado. Every path that
marks a Cobro as paid goes through `marcar_cobro_pagado`, which is only
called alongside a Pagado Pago.
"""
from __future__ import annotations

import logging
import time
from datetime import date, datetime
from typing import TYPE_CHECKING

from app.fjv.audit import record_event
from app.fjv.errors import NotConfiguredError, UpstreamError, ValidationError, raise_if_errors
from app.fjv.modules.clubs.models import Club
from app.fjv.modules.cobros.models import Cobro, Pago
from app.fjv.modules.equipos.models import Equipo
from app.fjv.modules.webhooks.mercadopago import MercadoPagoError
from app.fjv.utils import clean_str, parse_date, parse_decimal, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Query, Session
    from app.fjv.models import Usuario
    from app.fjv.modules.webhooks.mercadopago import MercadoPagoClient

logger = logging.getLogger(__name__)

COBRO_PENDIENTE = "Pendiente"
COBRO_PAGADO = "Pagado"
COBRO_VENCIDO = "Vencido"
COBRO_ANULADO = "Anulado"
COBRO_ESTADOS = (COBRO_PENDIENTE, COBRO_PAGADO, COBRO_VENCIDO, COBRO_ANULADO)

PAGO_PENDIENTE = "Pendiente"
PAGO_PAGADO = "Pagado"
PAGO_RECHAZADO = "Rechazado"
PAGO_ANULADO = "Anulado"
PAGO_ESTADOS = (PAGO_PENDIENTE, PAGO_PAGADO, PAGO_RECHAZADO, PAGO_ANULADO)

METODO_MANUAL = "Manual"
METODO_MERCADOPAGO = "MercadoPago"

# Pagado and Anulado are terminal.
STATUS_TRANSITIONS = {
    COBRO_PENDIENTE: {COBRO_PAGADO, COBRO_VENCIDO, COBRO_ANULADO},
    COBRO_VENCIDO: {COBRO_PENDIENTE, COBRO_PAGADO, COBRO_ANULADO},
    COBRO_PAGADO: set(),
    COBRO_ANULADO: set(),
}

PAGO_TRANSITIONS = {
    PAGO_PENDIENTE: {PAGO_PAGADO, PAGO_RECHAZADO, PAGO_ANULADO},
    PAGO_RECHAZADO: {PAGO_PENDIENTE, PAGO_PAGADO, PAGO_ANULADO},
    PAGO_PAGADO: set(),
    PAGO_ANULADO: set(),
}


def validate_cobro_payload(payload: dict, *, creating: bool) -> list[str]:
    errors = []
    if creating or "concepto" in payload:
        if not clean_str(payload.get("concepto")):
            errors.append("El concepto del cobro es obligatorio")
    if creating or "monto" in payload:
        try:
            monto = parse_decimal(payload.get("monto"), "monto")
        except ValidationError as e:
            errors.append(e.msg)
        else:
            if monto is None or monto <= 0:
                errors.append("El monto debe ser mayor que cero")
    if creating and payload.get("idClub") in (None, ""):
        errors.append("Debe especificar el club al que se realiza el cobro")
    for key in ("fechaCobro", "fechaVencimiento"):
        try:
            parse_date(payload.get(key), key)
        except ValidationError as e:
            errors.append(e.msg)
    return errors


def _resolve_club_equipo(s: "Session", club_id: int, equipo_id: int | None) -> None:
    if not s.get(Club, club_id):
        raise ValidationError(f"El Club con ID {club_id} no existe")
    if equipo_id is None:
        return
    equipo = s.get(Equipo, equipo_id)
    if not equipo:
        raise ValidationError(f"El Equipo con ID {equipo_id} no existe")
    if equipo.club_id != club_id:
        raise ValidationError(f"El Equipo con ID {equipo_id} no pertenece al Club con ID {club_id}")


def create_cobro(s: "Session", payload: dict, user: "Usuario | None") -> Cobro:
    raise_if_errors(validate_cobro_payload(payload, creating=True))
    club_id = parse_int(payload.get("idClub"), "idClub")
    equipo_id = parse_int(payload.get("idEquipo"), "idEquipo")
    _resolve_club_equipo(s, club_id, equipo_id)

    cobro = Cobro(
        club_id=club_id,
        equipo_id=equipo_id,
        monto=parse_decimal(payload.get("monto"), "monto"),
        fecha_cobro=parse_date(payload.get("fechaCobro"), "fechaCobro") or date.today(),
        fecha_vencimiento=parse_date(payload.get("fechaVencimiento"), "fechaVencimiento"),
        concepto=clean_str(payload.get("concepto")) or "",
        estado=COBRO_PENDIENTE,
        observaciones=clean_str(payload.get("observaciones")),
    )
    s.add(cobro)
    s.flush()
    record_event(
        s,
        actor=user,
        action="cobro.create",
        entity_type="Cobro",
        entity_id=str(cobro.id),
        metadata={"club_id": club_id, "equipo_id": equipo_id, "monto": cobro.monto, "concepto": cobro.concepto},
    )
    return cobro


def update_cobro(s: "Session", cobro: Cobro, payload: dict, user: "Usuario | None") -> None:
    """Partial update. `estado` is ignored here; state changes go through cambiar_estado."""
    raise_if_errors(validate_cobro_payload(payload, creating=False))
    changes = {}

    club_id = parse_int(payload.get("idClub"), "idClub") if "idClub" in payload else cobro.club_id
    equipo_id = parse_int(payload.get("idEquipo"), "idEquipo") if "idEquipo" in payload else cobro.equipo_id
    if club_id is None:
        raise ValidationError("Debe especificar el club al que se realiza el cobro")
    if club_id != cobro.club_id or equipo_id != cobro.equipo_id:
        _resolve_club_equipo(s, club_id, equipo_id)
        if club_id != cobro.club_id:
            changes["club_id"] = {"old": cobro.club_id, "new": club_id}
            cobro.club_id = club_id
            cobro.club = s.get(Club, club_id)
        if equipo_id != cobro.equipo_id:
            changes["equipo_id"] = {"old": cobro.equipo_id, "new": equipo_id}
            cobro.equipo_id = equipo_id
            cobro.equipo = s.get(Equipo, equipo_id) if equipo_id else None

    if "monto" in payload:
        monto = parse_decimal(payload.get("monto"), "monto")
        if monto != cobro.monto:
            if cobro.estado == COBRO_PAGADO:
                raise ValidationError("No se puede modificar el monto de un cobro pagado")
            changes["monto"] = {"old": cobro.monto, "new": monto}
            cobro.monto = monto

    for key, attr in (("fechaCobro", "fecha_cobro"), ("fechaVencimiento", "fecha_vencimiento")):
        if key in payload:
            val = parse_date(payload.get(key), key)
            if attr == "fecha_cobro" and val is None:
                continue
            if val != getattr(cobro, attr):
                changes[attr] = {"old": getattr(cobro, attr), "new": val}
                setattr(cobro, attr, val)

    for key, attr in (("concepto", "concepto"), ("observaciones", "observaciones"), ("comprobantePago", "comprobante_pago")):
        if key in payload:
            val = clean_str(payload.get(key))
            if attr == "concepto" and not val:
                continue
            if val != getattr(cobro, attr):
                changes[attr] = {"old": getattr(cobro, attr), "new": val}
                setattr(cobro, attr, val)

    record_event(
        s,
        actor=user,
        action="cobro.edit",
        entity_type="Cobro",
        entity_id=str(cobro.id),
        metadata={"changes": changes},
    )


def delete_cobro(s: "Session", cobro: Cobro, user: "Usuario | None") -> None:
    if cobro.estado == COBRO_PAGADO:
        raise ValidationError("No se puede eliminar un cobro pagado")
    record_event(
        s,
        actor=user,
        action="cobro.delete",
        entity_type="Cobro",
        entity_id=str(cobro.id),
        metadata={"club_id": cobro.club_id, "monto": cobro.monto, "concepto": cobro.concepto},
    )
    s.delete(cobro)


def marcar_cobro_pagado(
    cobro: Cobro,
    *,
    comprobante: str | None = None,
    observaciones: str | None = None,
) -> None:
    """Move a Cobro to Pagado. Callers must have recorded a Pagado Pago for it in the same transaction."""
    cobro.estado = COBRO_PAGADO
    if comprobante is not None:
        cobro.comprobante_pago = comprobante
    if observaciones is not None:
        cobro.observaciones = observaciones


def validate_transition(cobro: Cobro, new_estado: str) -> list[str]:
    errors = []
    if new_estado not in COBRO_ESTADOS:
        errors.append("El estado debe ser 'Pendiente', 'Pagado', 'Vencido' o 'Anulado'")
        return errors
    if cobro.estado not in STATUS_TRANSITIONS:
        errors.append(f"Estado actual '{cobro.estado}' inválido")
        return errors
    if new_estado != cobro.estado and new_estado not in STATUS_TRANSITIONS[cobro.estado]:
        errors.append(f"No se puede cambiar el estado de '{cobro.estado}' a '{new_estado}'")
    return errors


def cambiar_estado(s: "Session", cobro: Cobro, payload: dict, user: "Usuario | None") -> Pago | None:
    """
    Manual state change. Moving to Pagado records a manual Pago for the full amount.
    Returns the Pago created, if any.
    """
    estado = clean_str(payload.get("estado")) or ""
    raise_if_errors(validate_transition(cobro, estado))
    old = cobro.estado

    comprobante = clean_str(payload.get("comprobantePago")) if "comprobantePago" in payload else None
    observaciones = clean_str(payload.get("observaciones")) if "observaciones" in payload else None

    pago = None
    if estado == COBRO_PAGADO and old != COBRO_PAGADO:
        pago = Pago(
            cobro=cobro,
            monto=cobro.monto,
            estado=PAGO_PAGADO,
            metodo_pago=clean_str(payload.get("metodoPago")) or METODO_MANUAL,
            fecha_pago=datetime.utcnow(),
            datos_extra={"comprobante": comprobante} if comprobante else None,
        )
        s.add(pago)
        marcar_cobro_pagado(cobro, comprobante=comprobante, observaciones=observaciones)
    else:
        cobro.estado = estado
        if comprobante is not None:
            cobro.comprobante_pago = comprobante
        if observaciones is not None:
            cobro.observaciones = observaciones
    s.flush()

    record_event(
        s,
        actor=user,
        action="cobro.estado",
        entity_type="Cobro",
        entity_id=str(cobro.id),
        metadata={"from": old, "to": estado, "pago_id": pago.id if pago else None},
    )
    return pago


def registrar_pago(s: "Session", cobro: Cobro, payload: dict, user: "Usuario | None") -> Pago:
    """Record a payment against a Cobro. A Pagado payment marks the Cobro as Pagado."""
    if cobro.estado in (COBRO_PAGADO, COBRO_ANULADO):
        raise ValidationError(f"El cobro está en estado '{cobro.estado}' y no admite nuevos pagos")
    estado = clean_str(payload.get("estado")) or PAGO_PAGADO
    if estado not in PAGO_ESTADOS:
        raise ValidationError(f"Estado de pago inválido. Debe ser uno de: {', '.join(PAGO_ESTADOS)}")
    if estado == PAGO_ANULADO:
        raise ValidationError("No se puede registrar un pago anulado")
    monto = parse_decimal(payload.get("monto"), "monto") or cobro.monto
    if monto <= 0:
        raise ValidationError("El monto debe ser mayor que cero")
    fecha_pago = parse_date(payload.get("fechaPago"), "fechaPago")

    payment_id = clean_str(payload.get("paymentId"))
    if payment_id and s.query(Pago.id).filter(Pago.payment_id == payment_id).first() is not None:
        raise ValidationError(f"Ya existe un pago con el ID de transacción '{payment_id}'")

    pago = Pago(
        cobro=cobro,
        payment_id=payment_id,
        monto=monto,
        estado=estado,
        metodo_pago=clean_str(payload.get("metodoPago")) or METODO_MANUAL,
        fecha_pago=datetime.combine(fecha_pago, datetime.min.time()) if fecha_pago else (
            datetime.utcnow() if estado == PAGO_PAGADO else None
        ),
    )
    s.add(pago)
    if estado == PAGO_PAGADO:
        marcar_cobro_pagado(
            cobro,
            comprobante=clean_str(payload.get("comprobantePago")),
            observaciones=clean_str(payload.get("observaciones")),
        )
    s.flush()
    record_event(
        s,
        actor=user,
        action="pago.create",
        entity_type="Pago",
        entity_id=str(pago.id),
        metadata={"cobro_id": cobro.id, "monto": monto, "estado": estado, "metodo": pago.metodo_pago},
    )
    return pago


def update_pago(s: "Session", pago: Pago, payload: dict, user: "Usuario | None") -> None:
    changes = {}
    estado = clean_str(payload.get("estado"))
    if estado and estado != pago.estado:
        if estado not in PAGO_ESTADOS:
            raise ValidationError(f"Estado de pago inválido. Debe ser uno de: {', '.join(PAGO_ESTADOS)}")
        if estado not in PAGO_TRANSITIONS.get(pago.estado, set()):
            raise ValidationError(f"No se puede cambiar el estado del pago de '{pago.estado}' a '{estado}'")
        if estado == PAGO_PAGADO and pago.cobro.estado == COBRO_ANULADO:
            raise ValidationError("El cobro está anulado y no admite pagos")
        changes["estado"] = {"old": pago.estado, "new": estado}
        pago.estado = estado
        if estado == PAGO_PAGADO:
            pago.fecha_pago = pago.fecha_pago or datetime.utcnow()
            if pago.cobro.estado != COBRO_PAGADO:
                marcar_cobro_pagado(pago.cobro, comprobante=clean_str(payload.get("comprobantePago")))

    metodo = clean_str(payload.get("metodoPago"))
    if metodo and metodo != pago.metodo_pago:
        changes["metodo_pago"] = {"old": pago.metodo_pago, "new": metodo}
        pago.metodo_pago = metodo

    record_event(
        s,
        actor=user,
        action="pago.edit",
        entity_type="Pago",
        entity_id=str(pago.id),
        metadata={"cobro_id": pago.cobro_id, "changes": changes},
    )


def external_reference_for(cobro: Cobro) -> str:
    return f"cobro_{cobro.id}_{int(time.time())}"


def crear_preferencia(
    s: "Session",
    cobro: Cobro,
    client: "MercadoPagoClient",
    user: "Usuario | None",
    *,
    frontend_url: str | None = None,
) -> tuple[Pago, dict]:
    """
    Create a checkout preference for a Cobro and a Pendiente Pago that tracks it.
    The webhook later finds the Pago by preference id or by external reference.
    """
    if cobro.estado not in (COBRO_PENDIENTE, COBRO_VENCIDO):
        raise ValidationError(f"El cobro está en estado '{cobro.estado}' y no puede pagarse")
    if not client.configured:
        raise NotConfiguredError("MercadoPago no está configurado")

    reference = external_reference_for(cobro)
    back_urls = None
    if frontend_url:
        base = frontend_url.rstrip("/")
        back_urls = {
            "success": f"{base}/pagos/exito?cobro={cobro.id}",
            "failure": f"{base}/pagos/error?cobro={cobro.id}",
            "pending": f"{base}/pagos/pendiente?cobro={cobro.id}",
        }
    try:
        pref = client.create_preference(
            title=cobro.concepto,
            amount=float(cobro.monto),
            external_reference=reference,
            back_urls=back_urls,
        )
    except MercadoPagoError as e:
        logger.error("Preference creation failed for cobro %s: %s", cobro.id, e)
        raise UpstreamError("Error al crear la preferencia de pago en MercadoPago") from e

    pago = Pago(
        cobro=cobro,
        preference_id=clean_str(pref.get("id")),
        monto=cobro.monto,
        estado=PAGO_PENDIENTE,
        metodo_pago=METODO_MERCADOPAGO,
        datos_extra={"externalReference": reference},
    )
    s.add(pago)
    s.flush()
    record_event(
        s,
        actor=user,
        action="pago.preferencia",
        entity_type="Pago",
        entity_id=str(pago.id),
        metadata={"cobro_id": cobro.id, "preference_id": pago.preference_id, "external_reference": reference},
    )
    checkout = {
        "preferenceId": pago.preference_id,
        "initPoint": pref.get("init_point"),
        "sandboxInitPoint": pref.get("sandbox_init_point"),
        "externalReference": reference,
    }
    return pago, checkout


def query_cobros(s: "Session", filters: dict) -> "Query":
    q = s.query(Cobro)
    club_id = parse_int(filters.get("idClub"), "idClub")
    if club_id is not None:
        q = q.filter(Cobro.club_id == club_id)
    equipo_id = parse_int(filters.get("idEquipo"), "idEquipo")
    if equipo_id is not None:
        q = q.filter(Cobro.equipo_id == equipo_id)
    estado = clean_str(filters.get("estado"))
    if estado:
        q = q.filter(Cobro.estado == estado)
    desde = parse_date(filters.get("fechaDesde"), "fechaDesde")
    if desde:
        q = q.filter(Cobro.fecha_cobro >= desde)
    hasta = parse_date(filters.get("fechaHasta"), "fechaHasta")
    if hasta:
        q = q.filter(Cobro.fecha_cobro <= hasta)
    return q.order_by(Cobro.fecha_cobro.desc(), Cobro.id.desc())
