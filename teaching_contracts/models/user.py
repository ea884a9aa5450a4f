from flask_login import UserMixin
from datetime import datetime
from .. import db

LECTURER = "lecturer"
ADMIN = "admin"
MANAGEMENT = "management"
SUPERADMIN = "superadmin"


class Role(db.Model):
    __tablename__ = "role"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), unique=True, nullable=False)

    def __repr__(self):
        return f"<Role {self.name}>"


class Department(db.Model):
    __tablename__ = "department"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<Department {self.name}>"


class User(UserMixin, db.Model):
    __tablename__ = "user"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    display_name = db.Column(db.String(255), nullable=True)

    role_id = db.Column(db.Integer, db.ForeignKey("role.id"), nullable=True, index=True)
    department_id = db.Column(db.Integer, db.ForeignKey("department.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    role = db.relationship(
        "Role",
        backref=db.backref("users", lazy="dynamic"),
        foreign_keys=[role_id],
        lazy="joined",
    )
    department = db.relationship(
        "Department",
        backref=db.backref("users", lazy="dynamic"),
        foreign_keys=[department_id],
        lazy="joined",
    )

    @property
    def role_name(self):
        return self.role.name.lower() if self.role else ""

    def has_role(self, *names):
        return self.role_name in {name.lower() for name in names}

    def summary(self):
        return {
            "id": self.id,
            "email": self.email,
            "display_name": self.display_name or self.username,
            "department_name": self.department.name if self.department else None,
        }

    def __repr__(self):
        return f"<User {self.username}>"
