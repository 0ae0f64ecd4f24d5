"""
Router des pointages en ligne : entrée, sortie, historique personnel.
"""

import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from woti_attendance.database import get_db
from woti_attendance.schemas.attendance import (
    AttendanceHistory,
    AttendanceRecordOut,
    ClockInRequest,
    ClockOutRequest,
)
from woti_attendance.security import get_current_user_id
from woti_attendance.services import attendance_service
from woti_attendance.services.sync_errors import StorageError

router = APIRouter(prefix="/api/v1/attendance", tags=["Pointages"])


@router.post(
    "/clock-in",
    response_model=AttendanceRecordOut,
    response_model_by_alias=True,
    status_code=201,
    summary="Pointer l'entrée",
)
def clock_in(
    data: ClockInRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Ouvre un pointage dans un établissement actif.
    Refusé si l'utilisateur a déjà un pointage ouvert.
    """
    try:
        return attendance_service.clock_in(db, user_id, data)
    except StorageError as e:
        raise HTTPException(status_code=409, detail=e.public_message)
    except ValueError as e:
        msg = str(e)
        if "introuvable" in msg:
            raise HTTPException(status_code=404, detail=msg)
        raise HTTPException(status_code=400, detail=msg)


@router.post(
    "/clock-out",
    response_model=AttendanceRecordOut,
    response_model_by_alias=True,
    summary="Pointer la sortie",
)
def clock_out(
    data: ClockOutRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Clôture le pointage indiqué, ou à défaut le pointage ouvert de l'utilisateur."""
    try:
        return attendance_service.clock_out(db, user_id, data)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=409, detail=e.public_message)
    except ValueError as e:
        msg = str(e)
        if "introuvable" in msg:
            raise HTTPException(status_code=404, detail=msg)
        raise HTTPException(status_code=400, detail=msg)


@router.get(
    "/my-records",
    response_model=AttendanceHistory,
    response_model_by_alias=True,
    summary="Historique de mes pointages",
)
def my_records(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    status: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Pointages de l'utilisateur courant, du plus récent au plus ancien, paginés."""
    return attendance_service.get_user_attendance(
        db, user_id,
        page=page, limit=limit,
        start_date=start_date, end_date=end_date, status=status,
    )
