# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata
# avant que SQLAlchemy tente de résoudre les clés étrangères inter-modèles.
# Sans cet import, les FK comme attendance.facility_id → facilities.id échouent
# avec NoReferencedTableError si organization.py n'est pas chargé avant attendance.py.

from woti_attendance.models.organization import Region, Council, Facility  # noqa: F401 (doit précéder user)
from woti_attendance.models.user import User  # noqa: F401
from woti_attendance.models.attendance import Attendance  # noqa: F401
from woti_attendance.models.activity import Activity  # noqa: F401
from woti_attendance.models.sync_conflict import SyncConflict  # noqa: F401
