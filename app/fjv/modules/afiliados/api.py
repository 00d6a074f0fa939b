from __future__ import annotations

import io
from datetime import date

from flask import Blueprint, jsonify, request, send_file

from app.fjv.audit import record_event
from app.fjv.db import db_session
from app.fjv.modules.afiliados.export import afiliados_workbook
from app.fjv.modules.afiliados.service import afiliados_para_exportar, buscar_afiliados, opciones_filtros
from app.fjv.rbac import current_user, require_admin, require_auth

bp = Blueprint("afiliados", __name__)

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@bp.get("/")
@require_auth
def afiliados_list():
    s = db_session()
    return jsonify(buscar_afiliados(s, request.args))


@bp.get("/opciones")
@require_auth
def afiliados_opciones():
    s = db_session()
    return jsonify(opciones_filtros(s))


@bp.get("/exportar")
@require_admin
def afiliados_exportar():
    s = db_session()
    personas = afiliados_para_exportar(s, request.args)
    data = afiliados_workbook(personas)

    record_event(
        s,
        actor=current_user(),
        action="afiliados.export",
        entity_type="Persona",
        entity_id="export",
        metadata={"filters": request.args.to_dict(), "row_count": len(personas)},
    )
    s.commit()

    filename = f"afiliados_{date.today().strftime('%Y%m%d')}.xlsx"
    return send_file(
        io.BytesIO(data),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name=filename,
        max_age=0,
    )
