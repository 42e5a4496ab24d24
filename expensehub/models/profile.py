from expensehub.utils.dates import utcnow
from flask_login import UserMixin
from expensehub import db


class Company(db.Model):
    __tablename__ = "company"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    def __repr__(self):
        return f"<Company {self.id} {self.name}>"


class Profile(UserMixin, db.Model):
    __tablename__ = "profile"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    full_name = db.Column(db.String(200))
    role = db.Column(db.String(50), default='user', nullable=False)
    company_id = db.Column(db.Integer, db.ForeignKey("company.id", ondelete="SET NULL"), nullable=True)
    is_active_profile = db.Column("is_active", db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    company = db.relationship("Company")

    @property
    def is_active(self):
        return bool(self.is_active_profile)

    @property
    def display_name(self) -> str:
        return self.full_name or self.email

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "role": self.role,
            "company_id": self.company_id,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<Profile {self.id} role={self.role} company={self.company_id}>"
