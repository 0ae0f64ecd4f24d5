"""
Exceptions de la synchronisation offline.

Seule BatchInputError remonte jusqu'au router (requête rejetée en bloc).
Toutes les autres sont interceptées enregistrement par enregistrement
par l'orchestrateur (sync_service) et rangées dans le bucket `errors`.
"""

from typing import List


class SyncError(Exception):
    """Base des erreurs de synchronisation."""


class BatchInputError(SyncError, ValueError):
    """Le corps de la requête n'est pas une liste d'enregistrements exploitable."""


class RecordValidationError(SyncError):
    """Un enregistrement est mal formé ; porte la liste des erreurs par champ."""

    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


class StorageError(SyncError):
    """
    Échec de persistance pour un enregistrement.
    `public_message` est renvoyé au client ; le détail technique reste dans les logs.
    """

    public_message = "Erreur de stockage, l'enregistrement doit être resynchronisé."


class DuplicateRecordError(StorageError):
    """Insertion refusée par la contrainte d'unicité (device_id, client_timestamp)."""

    public_message = "Un enregistrement avec la même clé a été inséré simultanément."


class StaleRecordError(StorageError):
    """La mise à jour conditionnelle sur sync_version n'a touché aucune ligne."""

    public_message = "L'enregistrement a été modifié simultanément, réessayez la synchronisation."
