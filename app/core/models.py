# Import all models here so every table is registered on Base.metadata
from app.api.access_logs.models import AccessLog
from app.api.invitations.models import Invitation
from app.api.walk_in_visitors.models import WalkInVisitor

# Re-export all models
__all__ = [
    'AccessLog',
    'Invitation',
    'WalkInVisitor',
]
