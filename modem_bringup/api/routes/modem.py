"""
Modem API Routes
Endpoints for running bring-up sessions and controlling ModemManager
"""

import asyncio
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from modem_bringup.i18n import get_language_from_request, translate
from modem_bringup.services.bringup_service import SessionBusy, get_bringup_service

router = APIRouter(prefix="/api/modem", tags=["modem"])

# =============================
# Request Models
# =============================


class DiagnoseRequest(BaseModel):
    """Per-run overrides; unset fields keep the stored preferences"""

    command: Optional[str] = None  # liveness command, 'AT' by default
    max_attempts: Optional[int] = None
    settle_delay: Optional[float] = None
    read_timeout: Optional[float] = None
    use_last_port_hint: Optional[bool] = None
    stabilization_delay: Optional[float] = None
    device_wait_timeout: Optional[float] = None
    disable_manager: Optional[bool] = None
    prefer_qmi: Optional[bool] = None
    scan_networks: Optional[bool] = None  # AT+COPS=? operator scan, minutes long
    scan_timeout: Optional[float] = None


class EnableManagerRequest(BaseModel):
    start_wait: float = 5.0


@router.get("/endpoints")
async def get_endpoints():
    """
    List candidate endpoints per connection mode.

    Returns:
        Detected connection mode, endpoints by mode and the remembered AT port
    """
    try:
        service = get_bringup_service()
        return {"success": True, **service.list_endpoints()}
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/diagnose")
async def diagnose(request: Request, body: Optional[DiagnoseRequest] = None):
    """
    Run a full bring-up session: detect, disable ModemManager, probe the AT
    port, then query SIM, identity, signal and registration, and optionally
    scan for network operators.

    A session that finds no device or no AT port still returns 200 with
    success=false and the remediation list; the report is the payload.
    """
    lang = get_language_from_request(request)
    overrides = body.model_dump(exclude_none=True) if body else None

    try:
        service = get_bringup_service()
        result = await asyncio.to_thread(service.run_session, overrides)
    except SessionBusy:
        raise HTTPException(status_code=409, detail=translate("modem.session_busy", lang))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=translate("modem.invalid_override", lang, error=str(e)))
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))

    payload = {"success": result.succeeded, "result": result.to_dict()}
    if not result.succeeded:
        payload["message"] = translate("modem.session_failed", lang, error=result.error_message)
    return payload


@router.get("/last-result")
async def get_last_result(request: Request):
    """Result of the most recent session"""
    lang = get_language_from_request(request)
    result = get_bringup_service().last_result
    if result is None:
        raise HTTPException(status_code=404, detail=translate("modem.no_result", lang))
    return {"success": True, "result": result.to_dict()}


@router.get("/manager")
async def get_manager_status():
    """ModemManager running / stopped"""
    try:
        manager = get_bringup_service().manager()
        return {"success": True, **(await asyncio.to_thread(manager.get_status))}
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/manager/disable")
async def disable_manager(request: Request):
    """Stop, disable and mask ModemManager"""
    lang = get_language_from_request(request)
    manager = get_bringup_service().manager()
    result = await asyncio.to_thread(manager.disable)

    key = "modem.manager_disabled" if result["success"] else "modem.manager_still_running"
    return {**result, "message": translate(key, lang, service=manager.service)}


@router.post("/manager/enable")
async def enable_manager(request: Request, body: Optional[EnableManagerRequest] = None):
    """Unmask, enable and start ModemManager"""
    lang = get_language_from_request(request)
    manager = get_bringup_service().manager()
    start_wait = body.start_wait if body else 5.0
    result = await asyncio.to_thread(manager.enable, start_wait)

    key = "modem.manager_enabled" if result["success"] else "modem.manager_enable_failed"
    return {**result, "message": translate(key, lang, service=manager.service)}
