from datetime import datetime
from .. import db


class Course(db.Model):
    __tablename__ = "course"

    id = db.Column(db.Integer, primary_key=True)
    dept_id = db.Column(db.Integer, db.ForeignKey("department.id"), nullable=False, index=True)
    course_code = db.Column(db.String(20), nullable=True)
    course_name = db.Column(db.String(255), nullable=False)
    hours = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    department = db.relationship("Department", lazy="joined")

    def __repr__(self):
        return f"<Course {self.course_code or self.id}>"


class ClassGroup(db.Model):
    __tablename__ = "class"

    id = db.Column(db.Integer, primary_key=True)
    dept_id = db.Column(db.Integer, db.ForeignKey("department.id"), nullable=True, index=True)
    name = db.Column(db.String(100), nullable=False)
    academic_year = db.Column(db.String(20), nullable=True)
    term = db.Column(db.String(50), nullable=True)
    year_level = db.Column(db.String(50), nullable=True)

    def __repr__(self):
        return f"<ClassGroup {self.name}>"
