from datetime import datetime
from .. import db


class Candidate(db.Model):
    """Recruitment candidate row. Owned by recruitment; read here for the hourly rate."""
    __tablename__ = "candidates"

    id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column("fullName", db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True, index=True)
    # Free text as entered by recruiters, e.g. "25", "$25", "25 USD"
    hourly_rate = db.Column("hourlyRate", db.String(50), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<Candidate {self.full_name}>"
