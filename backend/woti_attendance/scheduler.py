"""
Planificateur APScheduler : clôture automatique des pointages oubliés.

Le job s'exécute toutes les heures et passe en "incomplete" les pointages
ouverts depuis plus de ATTENDANCE_STALE_AFTER_HOURS (sortie jamais pointée).
"""

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from woti_attendance.database import SessionLocal

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def _close_stale_sessions_scheduled() -> None:
    """
    Tâche planifiée : une session BDD dédiée par exécution.
    Import local pour éviter les imports circulaires.
    """
    from woti_attendance.services.attendance_service import close_stale_sessions

    db = SessionLocal()
    try:
        closed = close_stale_sessions(db)
        logger.info("Clôture automatique : %d pointage(s) passé(s) en incomplete.", closed)
    except Exception as exc:
        logger.error("Erreur lors de la clôture automatique des pointages : %s", exc, exc_info=True)
    finally:
        db.close()


def start_scheduler() -> None:
    """Démarre le planificateur en arrière-plan (appelé au démarrage de l'API)."""
    scheduler.add_job(
        _close_stale_sessions_scheduled,
        trigger="interval",
        hours=1,
        id="close_stale_attendance",
        replace_existing=True,
    )
    scheduler.start()
    logger.info("Scheduler démarré, clôture des pointages oubliés toutes les heures.")


def stop_scheduler() -> None:
    """Arrête le planificateur proprement (appelé à l'arrêt de l'API)."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler arrêté.")
