from expensehub.utils.dates import utcnow
from expensehub import db


class PermissionAuditLog(db.Model):
    __tablename__ = "permission_audit_log"

    id = db.Column(db.Integer, primary_key=True)
    action = db.Column(db.String(32), nullable=False)
    actor_id = db.Column(db.Integer, db.ForeignKey("profile.id", ondelete="SET NULL"), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("profile.id", ondelete="SET NULL"), nullable=True)
    company_id = db.Column(db.Integer, db.ForeignKey("company.id", ondelete="SET NULL"), nullable=True)
    subject = db.Column(db.String(100))
    details = db.Column(db.JSON)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "action": self.action,
            "actor_id": self.actor_id,
            "user_id": self.user_id,
            "company_id": self.company_id,
            "subject": self.subject,
            "details": self.details or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<PermissionAuditLog {self.action} {self.subject} user={self.user_id}>"
