import enum
from datetime import datetime
from .. import db


class ContractStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    LECTURER_SIGNED = "LECTURER_SIGNED"
    MANAGEMENT_SIGNED = "MANAGEMENT_SIGNED"
    COMPLETED = "COMPLETED"


class TeachingContract(db.Model):
    __tablename__ = "teaching_contracts"

    id = db.Column(db.Integer, primary_key=True)
    lecturer_user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    created_by = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)

    academic_year = db.Column(db.String(20), nullable=False)
    term = db.Column(db.String(50), nullable=False)
    year_level = db.Column(db.String(50), nullable=True)

    # Optional teaching period; without it documents show the term instead
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)

    status = db.Column(db.String(32), nullable=False, default=ContractStatus.DRAFT.value, index=True)

    lecturer_signature_path = db.Column(db.String(512), nullable=True)
    lecturer_signed_at = db.Column(db.DateTime, nullable=True)
    management_signature_path = db.Column(db.String(512), nullable=True)
    management_signed_at = db.Column(db.DateTime, nullable=True)

    pdf_path = db.Column(db.String(512), nullable=True)
    pdf_generated_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    lecturer = db.relationship("User", foreign_keys=[lecturer_user_id], lazy="joined")
    creator = db.relationship("User", foreign_keys=[created_by])
    courses = db.relationship(
        "TeachingContractCourse",
        backref="contract",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="TeachingContractCourse.id",
    )

    @property
    def total_hours(self):
        return sum(item.hours or 0 for item in self.courses)

    def __repr__(self):
        return f"<TeachingContract {self.id} for User {self.lecturer_user_id}>"

    def to_dict(self):
        return {
            'id': self.id,
            'lecturer_user_id': self.lecturer_user_id,
            'created_by': self.created_by,
            'academic_year': self.academic_year,
            'term': self.term,
            'year_level': self.year_level,
            'start_date': self.start_date.isoformat() if self.start_date else None,
            'end_date': self.end_date.isoformat() if self.end_date else None,
            'status': self.status,
            'lecturer_signed_at': self.lecturer_signed_at.isoformat() if self.lecturer_signed_at else None,
            'management_signed_at': self.management_signed_at.isoformat() if self.management_signed_at else None,
            'has_lecturer_signature': bool(self.lecturer_signature_path),
            'has_management_signature': bool(self.management_signature_path),
            'pdf_generated_at': self.pdf_generated_at.isoformat() if self.pdf_generated_at else None,
            'total_hours': self.total_hours,
            'courses': [item.to_dict() for item in self.courses],
            'lecturer': self.lecturer.summary() if self.lecturer else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class TeachingContractCourse(db.Model):
    __tablename__ = "teaching_contract_courses"

    id = db.Column(db.Integer, primary_key=True)
    contract_id = db.Column(db.Integer, db.ForeignKey("teaching_contracts.id"), nullable=False, index=True)
    course_id = db.Column(db.Integer, db.ForeignKey("course.id"), nullable=False, index=True)
    class_id = db.Column(db.Integer, db.ForeignKey("class.id"), nullable=True)
    course_name = db.Column(db.String(255), nullable=False)
    year_level = db.Column(db.String(50), nullable=True)
    term = db.Column(db.String(50), nullable=True)
    academic_year = db.Column(db.String(20), nullable=True)
    hours = db.Column(db.Integer, nullable=False, default=0)

    course = db.relationship("Course", lazy="joined")

    def __repr__(self):
        return f"<TeachingContractCourse {self.course_name} ({self.hours}h)>"

    def to_dict(self):
        return {
            'id': self.id,
            'course_id': self.course_id,
            'class_id': self.class_id,
            'course_name': self.course_name,
            'year_level': self.year_level,
            'term': self.term,
            'academic_year': self.academic_year,
            'hours': self.hours,
        }
