"""
ERP SESSIONS - Erreurs de l'import de sessions

Levées par les services, traduites en HTTPException par les routes.
Les cas non bloquants (formateur introuvable, salle non attribuée,
ligne invalide parmi d'autres valides) ne lèvent jamais d'erreur.
"""


class SessionImportError(Exception):
    """Base de toutes les erreurs d'import"""
    code = "UNEXPECTED_ERROR"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class ValidationError(SessionImportError):
    """dealId manquant, aucune ligne, ou aucune ligne valide"""
    code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(SessionImportError):
    """Deal inexistant ou sans produit catalogue applicable"""
    code = "NOT_FOUND"
    status_code = 404


class PersistenceError(SessionImportError):
    """Échec du commit transactionnel (aucun retry côté moteur)"""
    code = "PERSISTENCE_ERROR"
    status_code = 500
